"""End-to-end test of the headless runner and its on-disk output."""

from __future__ import annotations

import asyncio
import json

import pytest

from models.config import SimulationConfig
from run_simulation import build_parser
from simulation.runner import HeadlessRunner
from simulation.sim_logging import run_name_from_config_path


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "smoke.yaml"
    path.write_text(
        "num_ticks: 60\n"
        "news_every_ticks: 10\n"
        "trade_probability: 0.5\n"
        "seed: 3\n",
        encoding="utf-8",
    )
    return path


def _run(config_path, output_dir):
    config = SimulationConfig.from_yaml(config_path)
    runner = HeadlessRunner(config, str(config_path), str(output_dir))
    summary = asyncio.run(runner.run())
    return runner, summary


class TestHeadlessRunner:
    def test_run_writes_outputs(self, config_path, tmp_path):
        out = tmp_path / "results"
        runner, summary = _run(config_path, out)

        run_dir = out / "smoke"
        assert summary["run_name"] == "smoke"
        assert summary["ticks"] == 60
        assert summary["news_published"] == 5 + 6
        for name in ("config.yaml", "simulation_log.json", "news.json", "summary.json"):
            assert (run_dir / name).exists()

        pf = runner.session.get_portfolio()
        pf_dir = run_dir / "portfolios" / pf.portfolio_id
        transactions = json.loads((pf_dir / "transactions.json").read_text())
        valuation = json.loads((pf_dir / "valuation.json").read_text())
        assert len(transactions) == len(pf.transaction_history)
        assert valuation["cash_balance"] == pytest.approx(pf.cash_balance)

        log = json.loads((run_dir / "simulation_log.json").read_text())
        assert log["ticks"] == 60
        assert set(log["final_prices"]) == set(runner.session.instruments)
        assert log["errors"] == []

    def test_trader_keeps_books_balanced(self, config_path, tmp_path):
        runner, summary = _run(config_path, tmp_path / "results")
        pf = runner.session.get_portfolio()
        spent = sum(t.total_value for t in pf.transaction_history if t.type == "BUY")
        received = sum(t.total_value for t in pf.transaction_history if t.type == "SELL")
        assert pf.cash_balance == pytest.approx(500.0 - spent + received)
        assert summary["portfolio_summaries"][0]["total_trades"] == len(pf.transaction_history)

    def test_same_seed_same_prices(self, config_path, tmp_path):
        first, _ = _run(config_path, tmp_path / "a")
        second, _ = _run(config_path, tmp_path / "b")
        assert {s: i.price for s, i in first.session.instruments.items()} == {
            s: i.price for s, i in second.session.instruments.items()
        }

    def test_repeat_run_gets_suffixed_dir(self, config_path, tmp_path):
        out = tmp_path / "results"
        _run(config_path, out)
        runner, _ = _run(config_path, out)
        assert runner.run_dir == out / "smoke_001"

    def test_run_name_from_path(self):
        assert run_name_from_config_path("config/example.yaml") == "example"


class TestCommandLine:
    def test_env_log_level_used_as_default(self, monkeypatch):
        monkeypatch.setenv("SIM_LOG_LEVEL", "debug")
        args = build_parser().parse_args(["--config", "config/example.yaml"])
        assert args.log_level == "DEBUG"

    @pytest.mark.parametrize("value", ["trace", "", "verbose"])
    def test_unknown_env_log_level_falls_back_to_info(self, monkeypatch, value):
        monkeypatch.setenv("SIM_LOG_LEVEL", value)
        args = build_parser().parse_args(["--config", "config/example.yaml"])
        assert args.log_level == "INFO"

    def test_explicit_flag_still_validated(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--config", "x.yaml", "--log-level", "TRACE"])
