"""Portfolio valuation: pure read-side aggregation.

Nothing here mutates a portfolio or an instrument, so these functions are
safe to call on every render tick.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Mapping

from models.instrument import Instrument
from models.portfolio import Portfolio
from models.valuation import HoldingValuation, PortfolioValuation, SectorAllocation

UNKNOWN = "Unknown"


def valuate(portfolio: Portfolio, instruments_by_symbol: Mapping[str, Instrument]) -> PortfolioValuation:
    """Value *portfolio* at the current prices in *instruments_by_symbol*.

    A holding whose instrument is missing is priced at 0 rather than raising.
    """
    holdings: list[HoldingValuation] = []
    sector_values: dict[str, float] = defaultdict(float)

    for symbol, holding in portfolio.holdings.items():
        instrument = instruments_by_symbol.get(symbol)
        price = instrument.price if instrument is not None else 0.0
        current_value = holding.quantity * price
        unrealized = current_value - holding.total_cost_basis
        sector = (instrument.sector if instrument is not None else "") or UNKNOWN
        holdings.append(
            HoldingValuation(
                symbol=symbol,
                company_name=(instrument.company_name if instrument is not None else "") or UNKNOWN,
                sector=sector,
                quantity=holding.quantity,
                avg_price_paid=holding.avg_price_paid,
                total_cost_basis=holding.total_cost_basis,
                current_price=price,
                current_value=current_value,
                unrealized_pl=unrealized,
                percent_change=(
                    unrealized / holding.total_cost_basis * 100
                    if holding.total_cost_basis > 0
                    else 0.0
                ),
            )
        )
        sector_values[sector] += current_value

    portfolio_value = sum(h.current_value for h in holdings)
    total_assets = portfolio.cash_balance + portfolio_value
    earnings = total_assets - portfolio.initial_balance
    total_cost_basis = sum(h.total_cost_basis for h in holdings)

    return PortfolioValuation(
        portfolio_id=portfolio.portfolio_id,
        cash_balance=portfolio.cash_balance,
        initial_balance=portfolio.initial_balance,
        portfolio_value=portfolio_value,
        total_assets=total_assets,
        earnings=earnings,
        percent_return=(
            earnings / portfolio.initial_balance * 100
            if portfolio.initial_balance > 0
            else 0.0
        ),
        total_cost_basis=total_cost_basis,
        total_unrealized_pl=portfolio_value - total_cost_basis,
        realized_pl=sum(t.realized_pl or 0.0 for t in portfolio.transaction_history),
        total_shares=sum(h.quantity for h in holdings),
        holdings=holdings,
        sector_allocation=sector_allocation(sector_values, portfolio_value),
    )


def sector_allocation(sector_values: Mapping[str, float], portfolio_value: float) -> list[SectorAllocation]:
    """Express per-sector values as percentages of *portfolio_value*, largest first."""
    allocations = [
        SectorAllocation(
            sector=sector,
            value=value,
            percentage=value / portfolio_value * 100 if portfolio_value > 0 else 0.0,
        )
        for sector, value in sector_values.items()
    ]
    return sorted(allocations, key=lambda a: a.value, reverse=True)


def top_performers(valuation: PortfolioValuation, n: int = 5) -> list[HoldingValuation]:
    """Holdings ranked by percent change, best first."""
    return sorted(valuation.holdings, key=lambda h: h.percent_change, reverse=True)[:n]
