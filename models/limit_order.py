"""Limit order model."""

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from models.transaction import utc_now

LimitOrderStatus = Literal["active", "completed", "failed", "cancelled", "expired"]


def as_utc(value: datetime) -> datetime:
    """Convert to an aware UTC datetime. Naive values are read as local time."""
    return value.astimezone(timezone.utc)


class LimitOrder(BaseModel):
    """Buy when the price drops to ``target_price``, or sell when it rises to it."""

    order_id: str = Field(default_factory=lambda: f"order-{uuid.uuid4().hex[:9]}")
    portfolio_id: str
    side: Literal["buy", "sell"]
    symbol: str
    quantity: int
    target_price: float
    expires_at: datetime | None = None
    status: LimitOrderStatus = "active"
    created_at: datetime = Field(default_factory=utc_now)
    closed_at: datetime | None = None
    execution_price: float | None = None
    fail_reason: str | None = None

    @field_validator("expires_at")
    @classmethod
    def _expiry_in_utc(cls, value: datetime | None) -> datetime | None:
        return None if value is None else as_utc(value)

    def is_triggered(self, price: float) -> bool:
        if self.side == "buy":
            return price <= self.target_price
        return price >= self.target_price
