"""Boundary contracts for the services the engine talks to.

Every backing service implements one of these ABCs so the session can be
wired to an HTTP backend, a database, or the in-memory versions below
interchangeably. The in-memory implementations round-trip everything
through ``simulation.records`` so they exercise the same field translation
a remote store would.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from jsonschema.exceptions import ValidationError

from models.instrument import Instrument
from models.portfolio import PortfolioSnapshot
from models.transaction import Transaction
from simulation import records

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """The ledger store could not durably record a change."""


# ---------------------------------------------------------------------------
# Contracts
# ---------------------------------------------------------------------------


class InstrumentSource(ABC):
    """Supplies a user's starting instruments and stores custom ones."""

    @abstractmethod
    async def fetch_instruments(self, user_id: str) -> list[Instrument]:
        """Return the instruments tracked by *user_id*."""

    @abstractmethod
    async def persist_custom_instrument(self, user_id: str, instrument: Instrument) -> Instrument:
        """Store a user-added instrument and return the stored version."""

    @abstractmethod
    async def delete_custom_instrument(self, user_id: str, symbol: str) -> None:
        """Remove a user-added instrument."""


class LedgerStore(ABC):
    """Durable record of transactions and portfolio state.

    Implementations raise ``PersistenceError`` when a write cannot be made
    durable. The store is the source of truth; last write wins.
    """

    @abstractmethod
    async def persist_transaction(self, portfolio_id: str, transaction: Transaction) -> None:
        """Append *transaction* to the portfolio's stored history."""

    @abstractmethod
    async def persist_portfolio_state(self, portfolio_id: str, snapshot: PortfolioSnapshot) -> None:
        """Overwrite the stored cash balance and holdings."""

    @abstractmethod
    async def fetch_portfolio_state(self, portfolio_id: str) -> PortfolioSnapshot | None:
        """Return the stored cash and holdings, or ``None`` if nothing is stored."""

    @abstractmethod
    async def fetch_transactions(self, portfolio_id: str) -> list[Transaction]:
        """Return the stored transaction history, oldest first."""


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

DEFAULT_INSTRUMENTS: list[dict[str, Any]] = [
    {"symbol": "AAPL", "companyName": "Apple Inc.", "sector": "Technology", "marketPrice": 178.72, "volatility": 0.018},
    {"symbol": "MSFT", "companyName": "Microsoft Corp.", "sector": "Technology", "marketPrice": 397.58, "volatility": 0.016},
    {"symbol": "AMZN", "companyName": "Amazon.com Inc.", "sector": "Consumer Cyclical", "marketPrice": 145.92, "volatility": 0.022},
    {"symbol": "TSLA", "companyName": "Tesla Inc.", "sector": "Automotive", "marketPrice": 235.45, "volatility": 0.035},
    {"symbol": "GOOGL", "companyName": "Alphabet Inc.", "sector": "Communication", "marketPrice": 157.73, "volatility": 0.015},
    {"symbol": "JPM", "companyName": "JPMorgan Chase & Co.", "sector": "Financial Services", "marketPrice": 186.89, "volatility": 0.014},
    {"symbol": "DIS", "companyName": "The Walt Disney Company", "sector": "Entertainment", "marketPrice": 111.67, "volatility": 0.017},
]


class InMemoryInstrumentSource(InstrumentSource):
    """Serves a fixed catalogue plus any custom instruments added per user."""

    def __init__(self, catalogue: list[dict[str, Any]] | None = None) -> None:
        self._catalogue = [dict(r) for r in (catalogue if catalogue is not None else DEFAULT_INSTRUMENTS)]
        self._custom: dict[str, dict[str, dict[str, Any]]] = {}

    async def fetch_instruments(self, user_id: str) -> list[Instrument]:
        rows = self._catalogue + list(self._custom.get(user_id, {}).values())
        return [records.instrument_from_record(r) for r in rows]

    async def persist_custom_instrument(self, user_id: str, instrument: Instrument) -> Instrument:
        record = records.instrument_to_record(instrument)
        try:
            records.validate_record("instrument", record)
        except ValidationError as exc:
            raise PersistenceError(exc.message) from exc
        self._custom.setdefault(user_id, {})[instrument.symbol] = record
        logger.info("Stored custom instrument %s for user '%s'.", instrument.symbol, user_id)
        return records.instrument_from_record(record)

    async def delete_custom_instrument(self, user_id: str, symbol: str) -> None:
        self._custom.get(user_id, {}).pop(symbol, None)


class InMemoryLedgerStore(LedgerStore):
    """Keeps store records in dictionaries.

    Records are schema-checked before they are stored; a malformed record
    or ``fail_writes`` being set makes the write raise ``PersistenceError``.
    """

    def __init__(self) -> None:
        self.transactions: dict[str, list[dict[str, Any]]] = {}
        self.states: dict[str, dict[str, Any]] = {}
        self.fail_writes = False

    def _write_checked(self, portfolio_id: str, kind: str, record: dict[str, Any]) -> dict[str, Any]:
        if self.fail_writes:
            raise PersistenceError(f"Ledger store unavailable for portfolio {portfolio_id}.")
        try:
            records.validate_record(kind, record)
        except ValidationError as exc:
            raise PersistenceError(exc.message) from exc
        return record

    async def persist_transaction(self, portfolio_id: str, transaction: Transaction) -> None:
        record = self._write_checked(
            portfolio_id, "transaction", records.transaction_to_record(portfolio_id, transaction)
        )
        self.transactions.setdefault(portfolio_id, []).append(record)

    async def persist_portfolio_state(self, portfolio_id: str, snapshot: PortfolioSnapshot) -> None:
        record = records.portfolio_state_to_record(snapshot)
        self.states[portfolio_id] = self._write_checked(portfolio_id, "portfolio_state", record)

    async def fetch_portfolio_state(self, portfolio_id: str) -> PortfolioSnapshot | None:
        record = self.states.get(portfolio_id)
        return records.portfolio_state_from_record(record) if record is not None else None

    async def fetch_transactions(self, portfolio_id: str) -> list[Transaction]:
        return [records.transaction_from_record(r) for r in self.transactions.get(portfolio_id, [])]
