"""Instrument models: the simulated tradable asset and custom-instrument requests."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

# Prices never fall below this floor.
EPSILON = 0.01

_SYMBOL_RE = re.compile(r"^[A-Z]{1,5}$")


class Instrument(BaseModel):
    """A simulated equity.

    Mutated in place every tick by ``PriceProcess`` and on every news story.
    ``day_high`` / ``day_low`` stay ``None`` until the first tick or day roll.
    """

    symbol: str
    company_name: str = ""
    sector: str = ""
    price: float = Field(gt=0)
    previous_close: float = 0.0
    open_price: float = 0.0
    day_high: float | None = None
    day_low: float | None = None
    volatility: float = Field(default=0.015, gt=0)
    sentiment: float = 0.0
    price_history: list[float] = []
    is_custom: bool = False

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("Instrument symbol must not be empty.")
        return value

    def day_change(self) -> tuple[float, float]:
        """Return ``(absolute, percent)`` change since the open."""
        if self.open_price <= 0:
            return 0.0, 0.0
        value = self.price - self.open_price
        return value, (self.price / self.open_price - 1) * 100


class CustomInstrumentRequest(BaseModel):
    """User input for adding a custom instrument to the simulation."""

    symbol: str
    company_name: str = Field(min_length=1)
    initial_price: float = Field(gt=0)
    sector: str = "Custom"
    volatility: float = Field(default=0.015, gt=0)

    @field_validator("symbol")
    @classmethod
    def _check_symbol(cls, value: str) -> str:
        value = value.strip().upper()
        if not _SYMBOL_RE.match(value):
            raise ValueError("Symbol must be 1-5 letters.")
        return value

    @field_validator("sector")
    @classmethod
    def _default_sector(cls, value: str) -> str:
        return value.strip() or "Custom"
