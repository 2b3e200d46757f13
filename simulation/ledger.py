"""In-process holdings ledger: cost-basis accounting for buys and sells.

The ledger validates and applies trades with all-or-nothing semantics. A
rejected trade returns a ``TradeResult`` explaining why and leaves the
portfolio untouched; an accepted one updates cash, the holding and the
transaction log together.

Cost basis is tracked per holding as a running total. Buys blend into a
weighted average; sells release cost basis in proportion to the units sold,
so a partial sell never changes ``avg_price_paid``.
"""

from __future__ import annotations

import logging

from models.config import LedgerConfig
from models.instrument import Instrument
from models.portfolio import Holding, Portfolio
from models.transaction import TradeErrorKind, TradeResult, Transaction

logger = logging.getLogger(__name__)


class HoldingsLedger:
    """Applies BUY/SELL operations to portfolios.

    These are the only legal mutators of ``Portfolio.cash_balance`` and
    ``Portfolio.holdings``. The ledger itself is stateless; one instance
    can serve every portfolio in a session.
    """

    def __init__(self, config: LedgerConfig | None = None) -> None:
        self._config = config or LedgerConfig()

    @property
    def max_quantity(self) -> int:
        return self._config.max_quantity_per_trade

    def new_portfolio(self, name: str = "Main", initial_balance: float | None = None) -> Portfolio:
        balance = self._config.initial_balance if initial_balance is None else initial_balance
        return Portfolio(name=name, initial_balance=balance, cash_balance=balance)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def buy(self, portfolio: Portfolio, instrument: Instrument | None, quantity: int) -> TradeResult:
        """Buy *quantity* units of *instrument* at its current price."""
        rejection = self._validate(instrument, quantity)
        if rejection is not None:
            return rejection

        price = instrument.price
        cost = quantity * price
        if cost > portfolio.cash_balance:
            return TradeResult.rejected(
                TradeErrorKind.INSUFFICIENT_FUNDS,
                f"Insufficient cash to buy {quantity} {instrument.symbol} at ${price:.2f} "
                f"(cost ${cost:.2f}, available ${portfolio.cash_balance:.2f}).",
            )

        portfolio.cash_balance -= cost
        holding = portfolio.holdings.get(instrument.symbol)
        if holding is not None:
            new_quantity = holding.quantity + quantity
            new_total = holding.total_cost_basis + cost
            holding.quantity = new_quantity
            holding.total_cost_basis = new_total
            holding.avg_price_paid = new_total / new_quantity
        else:
            portfolio.holdings[instrument.symbol] = Holding(
                symbol=instrument.symbol,
                quantity=quantity,
                avg_price_paid=price,
                total_cost_basis=cost,
            )

        transaction = Transaction(
            type="BUY",
            symbol=instrument.symbol,
            company_name=instrument.company_name,
            quantity=quantity,
            price_per_unit=price,
            total_value=cost,
        )
        portfolio.transaction_history.append(transaction)
        logger.info(
            "[%s] BUY %d %s @ $%.2f (cash now $%.2f)",
            portfolio.portfolio_id, quantity, instrument.symbol, price, portfolio.cash_balance,
        )
        return TradeResult(
            status="accepted",
            transaction=transaction,
            message=f"Bought {quantity} {instrument.symbol} for ${cost:.2f}.",
        )

    def sell(self, portfolio: Portfolio, instrument: Instrument | None, quantity: int) -> TradeResult:
        """Sell *quantity* units of *instrument* at its current price."""
        rejection = self._validate(instrument, quantity)
        if rejection is not None:
            return rejection

        holding = portfolio.holdings.get(instrument.symbol)
        held = holding.quantity if holding is not None else 0
        if holding is None or quantity > held:
            return TradeResult.rejected(
                TradeErrorKind.INSUFFICIENT_SHARES,
                f"Cannot sell {quantity} {instrument.symbol}: only {held} held.",
            )

        price = instrument.price
        proceeds = quantity * price
        reduction = holding.total_cost_basis * (quantity / holding.quantity)

        portfolio.cash_balance += proceeds
        holding.quantity -= quantity
        if holding.quantity == 0:
            del portfolio.holdings[instrument.symbol]
        else:
            holding.total_cost_basis -= reduction
            holding.avg_price_paid = holding.total_cost_basis / holding.quantity

        transaction = Transaction(
            type="SELL",
            symbol=instrument.symbol,
            company_name=instrument.company_name,
            quantity=quantity,
            price_per_unit=price,
            total_value=proceeds,
            realized_pl=proceeds - reduction,
        )
        portfolio.transaction_history.append(transaction)
        logger.info(
            "[%s] SELL %d %s @ $%.2f (cash now $%.2f)",
            portfolio.portfolio_id, quantity, instrument.symbol, price, portfolio.cash_balance,
        )
        return TradeResult(
            status="accepted",
            transaction=transaction,
            message=f"Sold {quantity} {instrument.symbol} for ${proceeds:.2f}.",
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _validate(self, instrument: Instrument | None, quantity: int) -> TradeResult | None:
        """Return a rejection if the order is malformed, else ``None``."""
        if (
            isinstance(quantity, bool)
            or not isinstance(quantity, int)
            or quantity <= 0
            or quantity > self.max_quantity
        ):
            return TradeResult.rejected(
                TradeErrorKind.INVALID_QUANTITY,
                f"Quantity must be a whole number between 1 and {self.max_quantity}, got {quantity!r}.",
            )
        if instrument is None or instrument.price <= 0:
            symbol = instrument.symbol if instrument is not None else "?"
            return TradeResult.rejected(
                TradeErrorKind.UNKNOWN_INSTRUMENT,
                f"No current price for {symbol}.",
            )
        return None
