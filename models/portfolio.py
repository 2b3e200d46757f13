"""Portfolio state models."""

import uuid

from pydantic import BaseModel, Field

from models.transaction import Transaction


class Holding(BaseModel):
    """A portfolio's position in one instrument.

    ``total_cost_basis`` is the canonical figure and is maintained
    incrementally; ``avg_price_paid`` is always derived from it.
    """

    symbol: str
    quantity: int = Field(ge=0)
    avg_price_paid: float
    total_cost_basis: float


class Portfolio(BaseModel):
    """Cash, holdings and the append-only transaction log of one portfolio.

    Only ``HoldingsLedger`` mutates ``cash_balance`` and ``holdings``; every
    other component treats a portfolio as read-only.
    """

    portfolio_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str = "Main"
    initial_balance: float = Field(gt=0)
    cash_balance: float
    holdings: dict[str, Holding] = {}
    transaction_history: list[Transaction] = []

    def quantity_of(self, symbol: str) -> int:
        holding = self.holdings.get(symbol)
        return holding.quantity if holding else 0

    def snapshot(self) -> "PortfolioSnapshot":
        """Copy of the mutable state that gets persisted after each trade."""
        return PortfolioSnapshot(
            cash_balance=self.cash_balance,
            holdings={s: h.model_copy() for s, h in self.holdings.items()},
        )


class PortfolioSnapshot(BaseModel):
    """Cash and holdings at a point in time.

    Sent to the ledger store after every successful trade.
    """

    cash_balance: float
    holdings: dict[str, Holding]
