"""Run configuration.

One sub-model per engine component (price process, news, ledger, timers)
nested under ``SimulationConfig``, which is what a YAML run file maps onto.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class PriceProcessConfig(BaseModel):
    """Knobs for the per-instrument random walk."""

    random_step: float = Field(
        default=0.01,
        gt=0,
        description="Full width of the uniform random step; the step is (u - 0.5) * random_step.",
    )
    volatility_scaled: bool = Field(
        default=False,
        description="If true, use the instrument's volatility as the half-width of the random step.",
    )
    sentiment_coefficient: float = Field(
        default=0.005,
        ge=0.0,
        description="Multiplier turning accumulated sentiment into a per-tick drift.",
    )
    decay_factor: float = Field(
        default=0.95,
        ge=0.0,
        le=1.0,
        description="Sentiment is multiplied by this once per tick.",
    )
    history_capacity: int = Field(
        default=100,
        ge=2,
        description="Maximum number of samples kept in an instrument's price history.",
    )
    seed_days: int = Field(
        default=50,
        ge=1,
        description="Days of synthetic history generated when an instrument is created.",
    )
    max_trend: float = Field(
        default=0.005,
        ge=0.0,
        description="Market trend is drawn uniformly from [-max_trend, max_trend].",
    )
    trend_reroll_probability: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Per-tick probability that the market trend is re-drawn.",
    )


class NewsConfig(BaseModel):
    """Configuration for the news impact generator."""

    company_probability: float = Field(default=0.6, ge=0.0, le=1.0)
    sector_probability: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Probability of a sector story; the remainder goes to market stories.",
    )
    market_dampening: float = Field(
        default=0.7,
        ge=0.0,
        description="Fraction of a market story's impact applied to each instrument.",
    )
    history_size: int = Field(
        default=50,
        ge=1,
        description="Newest-first news history is capped at this many stories.",
    )
    burst_size: int = Field(
        default=5,
        ge=0,
        description="Number of stories emitted immediately when the generator starts.",
    )


class LedgerConfig(BaseModel):
    """Configuration for the holdings ledger."""

    initial_balance: float = Field(
        default=500.0,
        gt=0,
        description="Starting cash balance for newly created portfolios.",
    )
    max_quantity_per_trade: int = Field(
        default=100,
        ge=1,
        description="Upper bound on the number of units in a single buy or sell.",
    )


class SchedulerConfig(BaseModel):
    """Timer intervals for live (asyncio-driven) sessions, in seconds."""

    price_interval: float = Field(default=1.0, gt=0)
    news_interval: float = Field(default=30.0, gt=0)
    limit_order_interval: float = Field(default=5.0, gt=0)


class SimulationConfig(BaseModel):
    """Everything a run needs. Omitted sections fall back to their defaults.

    The YAML file carries no run name; the CLI uses the file stem.
    """

    user_id: str = Field(default="demo", description="User whose instruments are loaded.")
    price: PriceProcessConfig = Field(default_factory=PriceProcessConfig)
    news: NewsConfig = Field(default_factory=NewsConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    num_ticks: int = Field(
        default=200,
        ge=1,
        description="Number of price ticks in a headless run.",
    )
    news_every_ticks: int = Field(
        default=30,
        ge=1,
        description="In a headless run, publish one story every N ticks.",
    )
    trade_probability: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Per-tick probability that the demo trader places an order.",
    )
    seed: int | None = Field(
        default=None,
        description="Random seed for reproducible runs.",
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> SimulationConfig:
        """Parse *path* and validate it.

        ``FileNotFoundError`` for a missing file, ``ValueError`` when the
        document is not a mapping, pydantic ``ValidationError`` for bad values.
        """
        source = Path(path)
        if not source.is_file():
            raise FileNotFoundError(f"No config file at {source}")
        data = yaml.safe_load(source.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{source} must contain a YAML mapping, not {type(data).__name__}.")
        return cls.model_validate(data)
