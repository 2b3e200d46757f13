"""Per-instrument stochastic price process.

Each tick moves an instrument's price by a small random step plus the shared
market trend plus a drift proportional to the instrument's accumulated news
sentiment, then decays that sentiment toward zero::

    combined  = random_factor + market_trend + sentiment * sentiment_coefficient
    new_price = max(price * (1 + combined), EPSILON)

History is a bounded buffer: once ``history_capacity`` samples are stored
the oldest one is dropped on every append.
"""

from __future__ import annotations

import logging
import random

from models.config import PriceProcessConfig
from models.instrument import EPSILON, Instrument

logger = logging.getLogger(__name__)

# Daily drift bias range used when generating backward history.
_SEED_TREND_BIAS = 0.003


class MarketTrend:
    """Shared macro bias applied to every instrument on a tick.

    Re-drawn with a small probability each tick so the market drifts in one
    direction for a while before turning.
    """

    def __init__(self, config: PriceProcessConfig, rng: random.Random | None = None) -> None:
        self._config = config
        self._rng = rng or random.Random()
        self.value: float = self._draw()

    def _draw(self) -> float:
        return (self._rng.random() * 2 - 1) * self._config.max_trend

    def maybe_reroll(self) -> bool:
        """Re-draw the trend with the configured probability. Returns True if it changed."""
        if self._rng.random() < self._config.trend_reroll_probability:
            self.value = self._draw()
            logger.debug("Market trend re-rolled to %+.5f", self.value)
            return True
        return False


class PriceProcess:
    """Advances instrument prices one tick at a time."""

    def __init__(self, config: PriceProcessConfig | None = None, rng: random.Random | None = None) -> None:
        self._config = config or PriceProcessConfig()
        self._rng = rng or random.Random()

    @property
    def config(self) -> PriceProcessConfig:
        return self._config

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self, instrument: Instrument, market_trend: float) -> float:
        """Move *instrument* one step and return its new price."""
        cfg = self._config
        if cfg.volatility_scaled:
            random_factor = (self._rng.random() * 2 - 1) * instrument.volatility
        else:
            random_factor = (self._rng.random() - 0.5) * cfg.random_step
        sentiment_effect = instrument.sentiment * cfg.sentiment_coefficient
        combined = random_factor + market_trend + sentiment_effect

        new_price = max(instrument.price * (1 + combined), EPSILON)
        instrument.price = new_price
        self.append_history(instrument, new_price)

        instrument.day_high = new_price if instrument.day_high is None else max(instrument.day_high, new_price)
        instrument.day_low = new_price if instrument.day_low is None else min(instrument.day_low, new_price)

        instrument.sentiment *= cfg.decay_factor
        return new_price

    def append_history(self, instrument: Instrument, price: float) -> None:
        history = instrument.price_history
        history.append(price)
        overflow = len(history) - self._config.history_capacity
        if overflow > 0:
            del history[:overflow]

    # ------------------------------------------------------------------
    # Creation helpers
    # ------------------------------------------------------------------

    def seed_history(
        self,
        instrument: Instrument,
        days: int | None = None,
        start_price: float | None = None,
    ) -> None:
        """Replace *instrument*'s history with *days* synthetic samples ending at *start_price*.

        Walks backward in time from *start_price* (``price / (1 + change)``),
        which defaults to the current price. The walk origin is the newest
        sample, so every consecutive pair differs by one step.
        """
        days = self._config.seed_days if days is None else days
        price = start_price or instrument.price
        if price <= 0:
            logger.warning("Invalid start price for %s, using 100.", instrument.symbol)
            price = 100.0
        origin = price

        trend_bias = (self._rng.random() * 2 - 1) * _SEED_TREND_BIAS
        volatility = instrument.volatility
        rng = self._rng
        backward: list[float] = []
        for _ in range(days):
            change = trend_bias + volatility * (rng.random() + rng.random() + rng.random() - 1.5)
            # Very large volatilities can push 1 + change to zero or below.
            growth = max(1 + change, EPSILON)
            price = max(price / growth, EPSILON)
            backward.append(price)

        instrument.price_history = []
        for sample in reversed(backward):
            self.append_history(instrument, sample)
        self.append_history(instrument, origin)

    def roll_day(self, instrument: Instrument) -> None:
        """Start a new trading day at the current price."""
        instrument.previous_close = instrument.price
        instrument.open_price = instrument.price
        instrument.day_high = instrument.price
        instrument.day_low = instrument.price
