"""Read-side valuation models produced by ``simulation.valuation``."""

from pydantic import BaseModel


class HoldingValuation(BaseModel):
    """One holding priced at the current market."""

    symbol: str
    company_name: str = "Unknown"
    sector: str = "Unknown"
    quantity: int
    avg_price_paid: float
    total_cost_basis: float
    current_price: float
    current_value: float
    unrealized_pl: float
    percent_change: float


class SectorAllocation(BaseModel):
    sector: str
    value: float
    percentage: float


class PortfolioValuation(BaseModel):
    """Aggregate figures for a portfolio at the current prices.

    Derived on demand; never stored as canonical state.
    """

    portfolio_id: str
    cash_balance: float
    initial_balance: float
    portfolio_value: float
    total_assets: float
    earnings: float
    percent_return: float
    total_cost_basis: float
    total_unrealized_pl: float
    realized_pl: float
    total_shares: int
    holdings: list[HoldingValuation] = []
    sector_allocation: list[SectorAllocation] = []
