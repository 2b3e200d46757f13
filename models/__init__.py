"""Data models for the trading simulator.

The price process, news generator, ledger and session all import from models.
"""

from models.config import (
    LedgerConfig,
    NewsConfig,
    PriceProcessConfig,
    SchedulerConfig,
    SimulationConfig,
)
from models.instrument import EPSILON, CustomInstrumentRequest, Instrument
from models.limit_order import LimitOrder
from models.log import PortfolioLog, SimulationLog
from models.news import NewsStory, StoryTemplate
from models.portfolio import Holding, Portfolio, PortfolioSnapshot
from models.transaction import TradeErrorKind, TradeResult, Transaction
from models.valuation import HoldingValuation, PortfolioValuation, SectorAllocation

__all__ = [
    # config
    "LedgerConfig",
    "NewsConfig",
    "PriceProcessConfig",
    "SchedulerConfig",
    "SimulationConfig",
    # instrument
    "EPSILON",
    "CustomInstrumentRequest",
    "Instrument",
    # limit orders
    "LimitOrder",
    # log
    "PortfolioLog",
    "SimulationLog",
    # news
    "NewsStory",
    "StoryTemplate",
    # portfolio
    "Holding",
    "Portfolio",
    "PortfolioSnapshot",
    # transaction
    "TradeErrorKind",
    "TradeResult",
    "Transaction",
    # valuation
    "HoldingValuation",
    "PortfolioValuation",
    "SectorAllocation",
]
