"""Headless simulation runner: drives a session without timers.

Lifecycle:
    1. Build a session on in-memory collaborators and load instruments.
    2. Create a portfolio per configured name.
    3. For each tick:
        a. Advance prices.
        b. Publish a news story every ``news_every_ticks`` ticks.
        c. Let the demo trader place a random order.
        d. Check limit orders.
    4. Write per-portfolio logs and a summary.
"""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Any

from models.config import SimulationConfig
from models.log import PortfolioLog
from simulation.collaborators import InMemoryInstrumentSource, InMemoryLedgerStore
from simulation.session import SimulationSession
from simulation.sim_logging import SimulationLogger, run_name_from_config_path
from simulation.valuation import top_performers

logger = logging.getLogger(__name__)


class HeadlessRunner:
    """Runs a fixed number of ticks and writes the outcome to disk."""

    def __init__(
        self,
        config: SimulationConfig,
        config_yaml_path: str,
        output_dir: str = "results",
        portfolio_names: tuple[str, ...] = ("Main",),
    ) -> None:
        self._config = config
        self._config_path = config_yaml_path
        self._run_name = run_name_from_config_path(config_yaml_path)
        self._output = SimulationLogger(output_dir, config, self._run_name)
        self._portfolio_names = portfolio_names
        self._rng = random.Random(config.seed)
        self.session = SimulationSession(
            config,
            InMemoryInstrumentSource(),
            InMemoryLedgerStore(),
            rng=self._rng,
        )

    @property
    def run_dir(self) -> Path:
        return self._output.run_dir

    async def run(self) -> dict[str, Any]:
        """Execute the full run and return the summary."""
        self._output.init_run(self._config_path)
        session = self.session

        await session.load_instruments()
        for name in self._portfolio_names:
            session.create_portfolio(name)

        logger.info(
            "Starting run '%s': %d tick(s), %d instrument(s), %d portfolio(s).",
            self._run_name,
            self._config.num_ticks,
            len(session.instruments),
            len(session.portfolios),
        )

        session.news.publish(self._config.news.burst_size)
        for tick in range(1, self._config.num_ticks + 1):
            session.tick_prices()
            if tick % self._config.news_every_ticks == 0:
                session.news.publish(1)
            try:
                await self._maybe_trade()
                await session.check_limit_orders()
            except Exception as exc:
                msg = f"Tick {tick} failed: {exc}"
                logger.exception(msg)
                self._output.record_error(msg)

        for portfolio in session.portfolios:
            self._output.write_portfolio(
                PortfolioLog(
                    portfolio_id=portfolio.portfolio_id,
                    name=portfolio.name,
                    transactions=list(portfolio.transaction_history),
                    final_valuation=session.valuate(portfolio.portfolio_id),
                )
            )
        self._output.record_news(session.news.history)
        self._output.record_prices(
            session.tick_count,
            {s: i.price for s, i in session.instruments.items()},
        )

        summary = self._build_summary()
        self._output.finalize(summary)
        logger.info("Run '%s' complete. Output: %s", self._run_name, self._output.run_dir)
        return summary

    # ------------------------------------------------------------------
    # Demo trader
    # ------------------------------------------------------------------

    async def _maybe_trade(self) -> None:
        """With ``trade_probability``, buy or sell a small random lot."""
        if self._rng.random() >= self._config.trade_probability:
            return
        session = self.session
        portfolio = self._rng.choice(session.portfolios)
        held = list(portfolio.holdings)
        if held and self._rng.random() < 0.4:
            symbol = self._rng.choice(held)
            quantity = self._rng.randint(1, portfolio.holdings[symbol].quantity)
            await session.sell(symbol, quantity, portfolio.portfolio_id)
        else:
            symbol = self._rng.choice(list(session.instruments))
            await session.buy(symbol, self._rng.randint(1, 3), portfolio.portfolio_id)

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def _build_summary(self) -> dict[str, Any]:
        """Per-portfolio headline figures plus run totals."""
        portfolios = []
        for pf_log in self._output.simulation_log.portfolio_logs:
            valuation = pf_log.final_valuation
            if valuation is None:
                continue
            portfolios.append(
                {
                    "portfolio_id": pf_log.portfolio_id,
                    "name": pf_log.name,
                    "initial_balance": valuation.initial_balance,
                    "cash_balance": valuation.cash_balance,
                    "portfolio_value": valuation.portfolio_value,
                    "total_assets": valuation.total_assets,
                    "earnings": valuation.earnings,
                    "return_pct": valuation.percent_return,
                    "realized_pl": valuation.realized_pl,
                    "total_trades": len(pf_log.transactions),
                    "top_performers": [h.symbol for h in top_performers(valuation, 3)],
                }
            )
        return {
            "run_name": self._run_name,
            "ticks": self.session.tick_count,
            "news_published": len(self.session.news.history),
            "portfolio_summaries": portfolios,
        }
