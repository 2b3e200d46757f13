"""Trade models: Transaction, TradeErrorKind, TradeResult."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


def new_transaction_id() -> str:
    """Return a unique transaction id such as ``txn-3f9a1c0b2e4d``."""
    return f"txn-{uuid.uuid4().hex[:12]}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Transaction(BaseModel):
    """Immutable record of one executed buy or sell.

    Created exactly once per successful ledger operation.
    """

    model_config = ConfigDict(frozen=True)

    transaction_id: str = Field(default_factory=new_transaction_id)
    type: Literal["BUY", "SELL"]
    symbol: str
    company_name: str = ""
    quantity: int = Field(gt=0)
    price_per_unit: float
    total_value: float = 0.0  # quantity * price_per_unit when omitted
    realized_pl: float | None = None  # SELL only: proceeds minus cost basis released
    timestamp: datetime = Field(default_factory=utc_now)

    @model_validator(mode="before")
    @classmethod
    def _fill_total(cls, data):
        if not isinstance(data, dict) or data.get("total_value") is not None:
            return data
        quantity, price = data.get("quantity"), data.get("price_per_unit")
        if isinstance(quantity, (int, float)) and isinstance(price, (int, float)):
            data = {**data, "total_value": quantity * price}
        return data


class TradeErrorKind(str, Enum):
    """Why a trade did not (fully) go through."""

    INVALID_QUANTITY = "invalid_quantity"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_SHARES = "insufficient_shares"
    UNKNOWN_INSTRUMENT = "unknown_instrument"
    PERSISTENCE_FAILURE = "persistence_failure"


class TradeResult(BaseModel):
    """Outcome of a buy or sell.

    ``rejected`` means validation failed and nothing changed.
    ``persistence_failed`` means the in-memory trade was applied but the
    ledger store did not record it; callers must refresh from the store.
    """

    status: Literal["accepted", "rejected", "persistence_failed"]
    error: TradeErrorKind | None = None
    transaction: Transaction | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.status == "accepted"

    @classmethod
    def rejected(cls, error: TradeErrorKind, message: str) -> "TradeResult":
        return cls(status="rejected", error=error, message=message)
