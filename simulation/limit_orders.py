"""Limit orders: buys and sells that fill once the price crosses a target.

The book only decides *when* an order fires; the actual trade goes through
the caller-supplied executor, so fills get the same validation, persistence
and events as a manual trade.
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Awaitable, Callable, Mapping

from models.instrument import Instrument
from models.limit_order import LimitOrder, as_utc
from models.portfolio import Portfolio
from models.transaction import TradeResult, utc_now

logger = logging.getLogger(__name__)

Executor = Callable[[LimitOrder], Awaitable[TradeResult]]

# Closed orders kept for inspection; older ones are dropped.
CLOSED_ORDER_HISTORY = 100


class LimitOrderBook:
    """Holds limit orders for every portfolio in a session.

    Only active orders are scanned on ``check``. Orders that complete, fail,
    expire or are cancelled move to a bounded history of *closed_history*
    entries.
    """

    def __init__(self, max_quantity: int, closed_history: int = CLOSED_ORDER_HISTORY) -> None:
        self._max_quantity = max_quantity
        self._orders: list[LimitOrder] = []
        self._closed: deque[LimitOrder] = deque(maxlen=closed_history)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def add(self, order: LimitOrder, portfolio: Portfolio) -> LimitOrder:
        """Validate and register *order*. Raises ``ValueError`` if invalid."""
        error = self._validate(order, portfolio)
        if error is not None:
            raise ValueError(f"Invalid limit order: {error}")
        self._orders.append(order)
        logger.info(
            "Limit %s %d %s @ $%.2f registered (%s).",
            order.side, order.quantity, order.symbol, order.target_price, order.order_id,
        )
        return order

    def cancel(self, order_id: str) -> LimitOrder:
        order = self._find(order_id)
        if order.status != "active":
            raise ValueError(f"Order {order_id} is {order.status}, not active.")
        self._close(order, "cancelled", utc_now())
        return order

    def all_orders(self) -> list[LimitOrder]:
        """Active orders followed by the retained closed ones."""
        return [*self._orders, *self._closed]

    def active_orders(self) -> list[LimitOrder]:
        return list(self._orders)

    async def check(
        self,
        instruments: Mapping[str, Instrument],
        execute: Executor,
        now: datetime | None = None,
    ) -> list[LimitOrder]:
        """Expire stale orders and fire triggered ones. Returns orders that changed.

        A triggered order leaves the active list before its trade is awaited,
        so it fills at most once even if *execute* raises.
        """
        now = as_utc(now) if now is not None else utc_now()
        changed: list[LimitOrder] = []
        for order in self.active_orders():
            if order.expires_at is not None and order.expires_at < now:
                self._close(order, "expired", now)
                changed.append(order)
                continue

            instrument = instruments.get(order.symbol)
            if instrument is None or not order.is_triggered(instrument.price):
                continue

            price = instrument.price
            self._orders.remove(order)
            try:
                result = await execute(order)
            except Exception as exc:
                logger.exception("Limit order %s fill raised.", order.order_id)
                order.fail_reason = f"Fill raised {type(exc).__name__}: {exc}"
                self._close(order, "failed", now)
                changed.append(order)
                continue

            if result.ok or result.status == "persistence_failed":
                order.execution_price = price
                self._close(order, "completed", now)
            else:
                order.fail_reason = result.message or "Transaction failed"
                self._close(order, "failed", now)
            logger.info("Limit order %s %s: %s", order.order_id, order.status, result.message)
            changed.append(order)
        return changed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _close(self, order: LimitOrder, status: str, when: datetime) -> None:
        order.status = status
        order.closed_at = when
        if order in self._orders:
            self._orders.remove(order)
        self._closed.append(order)

    def _find(self, order_id: str) -> LimitOrder:
        for order in self.all_orders():
            if order.order_id == order_id:
                return order
        raise KeyError(f"Limit order '{order_id}' not found.")

    def _validate(self, order: LimitOrder, portfolio: Portfolio) -> str | None:
        if order.portfolio_id != portfolio.portfolio_id:
            return "order does not belong to this portfolio"
        if order.quantity <= 0 or order.quantity > self._max_quantity:
            return f"quantity must be between 1 and {self._max_quantity}"
        if order.target_price <= 0:
            return "target price must be positive"
        if order.side == "sell" and portfolio.quantity_of(order.symbol) < order.quantity:
            return f"only {portfolio.quantity_of(order.symbol)} {order.symbol} held"
        return None
