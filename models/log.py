"""Logging and run storage models.

- ``PortfolioLog``: one portfolio's trade log and closing valuation.
- ``SimulationLog``: run-level log with embedded config for reproducibility.
"""

from __future__ import annotations

from pydantic import BaseModel

from models.config import SimulationConfig
from models.news import NewsStory
from models.transaction import Transaction
from models.valuation import PortfolioValuation


class PortfolioLog(BaseModel):
    """Full audit trail of one portfolio over a run."""

    portfolio_id: str
    name: str
    transactions: list[Transaction] = []
    final_valuation: PortfolioValuation | None = None


class SimulationLog(BaseModel):
    """Run-level log with embedded configuration for reproducibility.

    ``run_name`` is derived from the configuration file path by the CLI.
    """

    run_name: str
    config: SimulationConfig
    ticks: int = 0
    final_prices: dict[str, float] = {}
    portfolio_logs: list[PortfolioLog] = []
    news: list[NewsStory] = []
    errors: list[str] = []
