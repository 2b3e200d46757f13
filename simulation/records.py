"""Translation between engine models and the backing store's record format.

The store speaks camelCase records (``transactionID``, ``pricePaid``,
``avgPricePaid`` ...) and older records use several names for the same
holding fields. Everything outside this module works with the canonical
pydantic models only.

Outgoing records can be checked against the JSON schemas in
``contracts/schemas/`` with ``validate_record``.
"""

from __future__ import annotations

import json
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from jsonschema.exceptions import ValidationError

from models.instrument import Instrument
from models.portfolio import Holding, PortfolioSnapshot
from models.transaction import Transaction

# Older holding records used these names for the average price.
_AVG_PRICE_KEYS = ("avgPricePaid", "avgPrice", "pricePaid")

SCHEMA_DIR = Path(__file__).resolve().parents[1] / "contracts" / "schemas"

RECORD_SCHEMAS = {
    "transaction": "transaction_record.schema.json",
    "portfolio_state": "portfolio_state_record.schema.json",
    "instrument": "instrument_record.schema.json",
}


# ------------------------------------------------------------------
# Schema validation
# ------------------------------------------------------------------

@lru_cache(maxsize=None)
def _validator(kind: str) -> Draft202012Validator:
    if kind not in RECORD_SCHEMAS:
        raise KeyError(f"Unknown record kind '{kind}'. Available: {', '.join(RECORD_SCHEMAS)}.")
    path = SCHEMA_DIR / RECORD_SCHEMAS[kind]
    if not path.exists():
        raise FileNotFoundError(f"Schema file not found at {path}")
    with path.open(encoding="utf-8") as fh:
        return Draft202012Validator(json.load(fh))


def record_errors(kind: str, record: dict[str, Any]) -> list[str]:
    """Return a readable message for every schema violation in *record*."""
    errors = sorted(_validator(kind).iter_errors(record), key=lambda e: [str(p) for p in e.path])
    return [f"{'.'.join(str(p) for p in e.path) or '(root)'}: {e.message}" for e in errors]


def validate_record(kind: str, record: dict[str, Any]) -> None:
    """Raise ``jsonschema.ValidationError`` if *record* does not match its schema."""
    errors = record_errors(kind, record)
    if errors:
        raise ValidationError(f"Invalid {kind} record: {'; '.join(errors)}")


# ------------------------------------------------------------------
# Transactions
# ------------------------------------------------------------------

def transaction_to_record(portfolio_id: str, transaction: Transaction) -> dict[str, Any]:
    return {
        "transactionID": transaction.transaction_id,
        "portfolioID": portfolio_id,
        "transactionType": transaction.type,
        "symbol": transaction.symbol,
        "companyName": transaction.company_name,
        "quantity": transaction.quantity,
        "pricePaid": transaction.price_per_unit,
        "totalValue": transaction.total_value,
        "realizedPL": transaction.realized_pl,
        "timestamp": transaction.timestamp.isoformat(),
    }


def transaction_from_record(record: dict[str, Any]) -> Transaction:
    timestamp = record.get("timestamp")
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    data: dict[str, Any] = {
        "transaction_id": record["transactionID"],
        "type": str(record["transactionType"]).upper(),
        "symbol": record["symbol"],
        "company_name": record.get("companyName") or "",
        "quantity": int(record["quantity"]),
        "price_per_unit": float(record["pricePaid"]),
        "total_value": record.get("totalValue"),
        "realized_pl": record.get("realizedPL"),
    }
    if timestamp is not None:
        data["timestamp"] = timestamp
    return Transaction(**data)


# ------------------------------------------------------------------
# Holdings / portfolio state
# ------------------------------------------------------------------

def holdings_to_record(holdings: dict[str, Holding]) -> dict[str, dict[str, Any]]:
    return {
        symbol: {
            "quantity": h.quantity,
            "avgPricePaid": h.avg_price_paid,
            "totalCostBasis": h.total_cost_basis,
        }
        for symbol, h in holdings.items()
    }


def holdings_from_record(raw: dict[str, dict[str, Any]]) -> dict[str, Holding]:
    """Normalise stored holdings into canonical ``Holding`` objects.

    Accepts any of the historical average-price field names and derives a
    missing ``totalCostBasis`` from quantity and average price. Empty
    positions are dropped.
    """
    holdings: dict[str, Holding] = {}
    for symbol, entry in raw.items():
        quantity = int(entry.get("quantity", 0))
        if quantity <= 0:
            continue
        avg = next((float(entry[k]) for k in _AVG_PRICE_KEYS if entry.get(k) is not None), 0.0)
        total = entry.get("totalCostBasis", entry.get("totalPricePaid"))
        total = float(total) if total is not None else quantity * avg
        holdings[symbol] = Holding(
            symbol=symbol,
            quantity=quantity,
            avg_price_paid=total / quantity,
            total_cost_basis=total,
        )
    return holdings


def portfolio_state_to_record(snapshot: PortfolioSnapshot) -> dict[str, Any]:
    return {
        "balance": snapshot.cash_balance,
        "holdings": holdings_to_record(snapshot.holdings),
    }


def portfolio_state_from_record(record: dict[str, Any]) -> PortfolioSnapshot:
    return PortfolioSnapshot(
        cash_balance=float(record["balance"]),
        holdings=holdings_from_record(record.get("holdings") or {}),
    )


# ------------------------------------------------------------------
# Instruments
# ------------------------------------------------------------------

def instrument_to_record(instrument: Instrument) -> dict[str, Any]:
    return {
        "symbol": instrument.symbol,
        "companyName": instrument.company_name,
        "sector": instrument.sector,
        "marketPrice": instrument.price,
        "previousClosePrice": instrument.previous_close,
        "openPrice": instrument.open_price,
        "volatility": instrument.volatility,
        "currentSentiment": instrument.sentiment,
        "priceHistory": list(instrument.price_history),
        "isCustom": instrument.is_custom,
    }


def instrument_from_record(record: dict[str, Any]) -> Instrument:
    price = record.get("marketPrice", record.get("price", record.get("initialPrice")))
    if price is None:
        raise ValueError(f"Instrument record for {record.get('symbol')!r} has no price.")
    return Instrument(
        symbol=record["symbol"],
        company_name=record.get("companyName") or record.get("name") or "",
        sector=record.get("sector") or "",
        price=float(price),
        previous_close=float(record.get("previousClosePrice") or 0.0),
        open_price=float(record.get("openPrice") or 0.0),
        volatility=float(record.get("volatility") or 0.015),
        sentiment=float(record.get("currentSentiment") or 0.0),
        price_history=[float(p) for p in record.get("priceHistory") or []],
        is_custom=bool(record.get("isCustom", False)),
    )
