"""Run output: writes what happened during a headless run to disk.

Layout of one run::

    <output_dir>/<run_name>/
        config.yaml                  copy of the YAML the run was started with
        simulation_log.json          SimulationLog (config, prices, portfolios, news, errors)
        news.json                    published stories, newest first
        summary.json                 headline figures per portfolio
        portfolios/<portfolio_id>/
            transactions.json
            valuation.json

A second run with the same name lands in ``<run_name>_001``, then
``<run_name>_002`` and so on; earlier output is never overwritten.
"""

from __future__ import annotations

import json
import logging
import shutil
from pathlib import Path
from typing import Any, Iterable

from models.config import SimulationConfig
from models.log import PortfolioLog, SimulationLog
from models.news import NewsStory

logger = logging.getLogger(__name__)


def run_name_from_config_path(config_path: str | Path) -> str:
    """``config/example.yaml`` -> ``example``."""
    return Path(config_path).stem


def _free_run_dir(output_dir: Path, run_name: str) -> Path:
    candidate, n = output_dir / run_name, 0
    while candidate.exists():
        n += 1
        candidate = output_dir / f"{run_name}_{n:03d}"
    return candidate


class SimulationLogger:
    """Collects a run's results in memory and flushes them as JSON.

    Usage order: ``init_run`` once, ``write_portfolio`` per portfolio when
    trading is done, the ``record_*`` helpers as needed, ``finalize`` last.
    """

    def __init__(self, output_dir: str | Path, config: SimulationConfig, run_name: str) -> None:
        self._run_dir = _free_run_dir(Path(output_dir), run_name)
        self._log = SimulationLog(run_name=self._run_dir.name, config=config)

    @property
    def run_dir(self) -> Path:
        return self._run_dir

    @property
    def simulation_log(self) -> SimulationLog:
        return self._log

    def init_run(self, config_yaml_path: str | Path | None = None) -> None:
        (self._run_dir / "portfolios").mkdir(parents=True, exist_ok=True)
        if config_yaml_path is None:
            return
        target = self._run_dir / "config.yaml"
        shutil.copy2(config_yaml_path, target)
        logger.info("Run config saved to %s", target)

    def write_portfolio(self, portfolio_log: PortfolioLog) -> None:
        """Dump one portfolio's trades and closing valuation."""
        folder = Path("portfolios") / portfolio_log.portfolio_id
        self._dump(folder / "transactions.json", [t.model_dump(mode="json") for t in portfolio_log.transactions])
        if portfolio_log.final_valuation is not None:
            self._dump(folder / "valuation.json", portfolio_log.final_valuation.model_dump(mode="json"))
        self._log.portfolio_logs.append(portfolio_log)
        logger.info(
            "Portfolio '%s': %d trade(s) written.", portfolio_log.name, len(portfolio_log.transactions)
        )

    def record_news(self, stories: Iterable[NewsStory]) -> None:
        self._log.news = list(stories)

    def record_prices(self, ticks: int, prices: dict[str, float]) -> None:
        self._log.ticks = ticks
        self._log.final_prices = dict(prices)

    def record_error(self, message: str) -> None:
        self._log.errors.append(message)
        logger.error("Run error recorded: %s", message)

    def finalize(self, summary: dict[str, Any] | None = None) -> None:
        """Write the run-level files. The summary is optional."""
        self._dump("simulation_log.json", self._log.model_dump(mode="json"))
        self._dump("news.json", [story.model_dump(mode="json") for story in self._log.news])
        if summary is not None:
            self._dump("summary.json", summary)
        logger.info("Run output complete in %s", self._run_dir)

    def _dump(self, relative: str | Path, data: Any) -> None:
        path = self._run_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
