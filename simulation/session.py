"""Simulation session: owns the live state of one user's simulator.

A session wires together the price process, the news generator, the
holdings ledger, the limit-order book and the two collaborators (instrument
source and ledger store). Nothing is global; every dependency is passed in
or built from the config.

Trades are two steps:

    1. apply to the in-memory portfolio (synchronous, all-or-nothing);
    2. persist the transaction and the new portfolio state (awaited).

If step 2 fails the in-memory change stays, the result comes back as
``persistence_failed`` and the portfolio is flagged until
``refresh_portfolio`` reloads it from the store.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime

from models.config import SimulationConfig
from models.instrument import CustomInstrumentRequest, Instrument
from models.limit_order import LimitOrder
from models.portfolio import Portfolio
from models.transaction import TradeErrorKind, TradeResult
from models.valuation import PortfolioValuation
from simulation.collaborators import InstrumentSource, LedgerStore
from simulation.events import EventBus
from simulation.ledger import HoldingsLedger
from simulation.limit_orders import LimitOrderBook
from simulation.news_generator import NewsImpactGenerator
from simulation.price_process import MarketTrend, PriceProcess
from simulation.scheduler import PeriodicTask, SharedScheduler
from simulation.valuation import valuate

logger = logging.getLogger(__name__)


class SimulationSession:
    """Live simulator state for one user."""

    def __init__(
        self,
        config: SimulationConfig,
        instrument_source: InstrumentSource,
        ledger_store: LedgerStore,
        *,
        rng: random.Random | None = None,
        price_process: PriceProcess | None = None,
        ledger: HoldingsLedger | None = None,
        events: EventBus | None = None,
    ) -> None:
        self._config = config
        self._source = instrument_source
        self._store = ledger_store
        self._rng = rng or random.Random(config.seed)
        self.events = events or EventBus()
        self.scheduler = SharedScheduler()

        self.price_process = price_process or PriceProcess(config.price, self._rng)
        self.market_trend = MarketTrend(config.price, self._rng)
        self.ledger = ledger or HoldingsLedger(config.ledger)
        self.news = NewsImpactGenerator(
            pool=self.instrument_list,
            config=config.news,
            rng=self._rng,
            on_publish=lambda story: self.events.emit("newsPublished", story),
            scheduler=self.scheduler,
        )
        self.limit_orders = LimitOrderBook(config.ledger.max_quantity_per_trade)

        self._price_timer = PeriodicTask(self.tick_prices, name="prices", scheduler=self.scheduler)
        self._limit_timer = PeriodicTask(
            self.check_limit_orders, name="limit-orders", scheduler=self.scheduler
        )

        self._instruments: dict[str, Instrument] = {}
        self._portfolios: dict[str, Portfolio] = {}
        self._default_portfolio_id: str | None = None
        self._stale: set[str] = set()
        self.tick_count = 0

    @property
    def config(self) -> SimulationConfig:
        return self._config

    # ------------------------------------------------------------------
    # Instruments
    # ------------------------------------------------------------------

    @property
    def instruments(self) -> dict[str, Instrument]:
        return self._instruments

    def instrument_list(self) -> list[Instrument]:
        return list(self._instruments.values())

    async def load_instruments(self) -> list[Instrument]:
        """Fetch the user's instruments and seed any that have no history."""
        fetched = await self._source.fetch_instruments(self._config.user_id)
        for instrument in fetched:
            self._prepare(instrument)
            self._instruments[instrument.symbol] = instrument
        logger.info(
            "Loaded %d instrument(s) for user '%s'.", len(fetched), self._config.user_id
        )
        return fetched

    def _prepare(self, instrument: Instrument) -> None:
        if not instrument.price_history:
            self.price_process.seed_history(instrument)
        if instrument.open_price <= 0:
            self.price_process.roll_day(instrument)
            instrument.previous_close = instrument.price * (0.98 + self._rng.random() * 0.04)

    async def add_custom_instrument(self, request: CustomInstrumentRequest) -> Instrument:
        """Create, seed and persist a user-defined instrument.

        Raises ``ValueError`` if the symbol is already tracked.
        """
        if request.symbol in self._instruments:
            raise ValueError(f"Instrument {request.symbol} already exists in simulation.")

        price = request.initial_price
        instrument = Instrument(
            symbol=request.symbol,
            company_name=request.company_name,
            sector=request.sector,
            price=price,
            previous_close=price * (1 - (self._rng.random() * 0.04 - 0.02)),
            open_price=price * (1 - (self._rng.random() * 0.02 - 0.01)),
            day_high=price,
            day_low=price,
            volatility=request.volatility,
            is_custom=True,
        )
        self.price_process.seed_history(instrument, days=30, start_price=price)
        stored = await self._source.persist_custom_instrument(self._config.user_id, instrument)
        self._instruments[stored.symbol] = stored
        logger.info("Added custom instrument %s at $%.2f.", stored.symbol, price)
        return stored

    async def remove_custom_instrument(self, symbol: str) -> None:
        """Remove a custom instrument that no portfolio holds."""
        symbol = symbol.upper()
        instrument = self._instruments.get(symbol)
        if instrument is None:
            raise KeyError(f"Instrument {symbol} not found.")
        if not instrument.is_custom:
            raise ValueError(f"Instrument {symbol} is not a custom instrument and cannot be removed.")
        holders = [p.name for p in self._portfolios.values() if p.quantity_of(symbol) > 0]
        if holders:
            raise ValueError(f"Cannot remove {symbol} while it is held in: {', '.join(holders)}.")

        await self._source.delete_custom_instrument(self._config.user_id, symbol)
        del self._instruments[symbol]

    # ------------------------------------------------------------------
    # Portfolios
    # ------------------------------------------------------------------

    @property
    def portfolios(self) -> list[Portfolio]:
        return list(self._portfolios.values())

    def create_portfolio(self, name: str = "Main", initial_balance: float | None = None) -> Portfolio:
        portfolio = self.ledger.new_portfolio(name, initial_balance)
        self._portfolios[portfolio.portfolio_id] = portfolio
        if self._default_portfolio_id is None:
            self._default_portfolio_id = portfolio.portfolio_id
        logger.info(
            "Created portfolio '%s' (%s) with $%.2f.",
            name, portfolio.portfolio_id, portfolio.initial_balance,
        )
        return portfolio

    def get_portfolio(self, portfolio_id: str | None = None) -> Portfolio:
        key = portfolio_id or self._default_portfolio_id
        if key is None or key not in self._portfolios:
            raise KeyError(f"Portfolio '{portfolio_id}' not found.")
        return self._portfolios[key]

    def needs_refresh(self, portfolio_id: str | None = None) -> bool:
        return self.get_portfolio(portfolio_id).portfolio_id in self._stale

    async def refresh_portfolio(self, portfolio_id: str | None = None) -> Portfolio:
        """Replace in-memory cash, holdings and history with the store's version."""
        portfolio = self.get_portfolio(portfolio_id)
        snapshot = await self._store.fetch_portfolio_state(portfolio.portfolio_id)
        if snapshot is None:
            logger.warning("No stored state for portfolio %s; keeping memory.", portfolio.portfolio_id)
            return portfolio
        portfolio.cash_balance = snapshot.cash_balance
        portfolio.holdings = dict(snapshot.holdings)
        portfolio.transaction_history = await self._store.fetch_transactions(portfolio.portfolio_id)
        self._stale.discard(portfolio.portfolio_id)
        logger.info("Portfolio %s refreshed from store.", portfolio.portfolio_id)
        return portfolio

    def valuate(self, portfolio_id: str | None = None) -> PortfolioValuation:
        return valuate(self.get_portfolio(portfolio_id), self._instruments)

    # ------------------------------------------------------------------
    # Trading
    # ------------------------------------------------------------------

    async def buy(self, symbol: str, quantity: int, portfolio_id: str | None = None) -> TradeResult:
        return await self._trade("buy", symbol, quantity, portfolio_id)

    async def sell(self, symbol: str, quantity: int, portfolio_id: str | None = None) -> TradeResult:
        return await self._trade("sell", symbol, quantity, portfolio_id)

    async def _trade(self, side: str, symbol: str, quantity: int, portfolio_id: str | None) -> TradeResult:
        portfolio = self.get_portfolio(portfolio_id)
        instrument = self._instruments.get(symbol.upper())
        apply = self.ledger.buy if side == "buy" else self.ledger.sell
        result = apply(portfolio, instrument, quantity)
        if not result.ok:
            logger.info("%s %s x%s rejected: %s", side.upper(), symbol, quantity, result.message)
            self.events.emit("transactionFailed", result)
            return result

        try:
            await self._store.persist_transaction(portfolio.portfolio_id, result.transaction)
            await self._store.persist_portfolio_state(portfolio.portfolio_id, portfolio.snapshot())
        except Exception as exc:
            # Any store failure after the in-memory apply leaves memory ahead of the store.
            logger.warning("Trade applied in memory but not persisted: %r", exc)
            self._stale.add(portfolio.portfolio_id)
            failed = TradeResult(
                status="persistence_failed",
                error=TradeErrorKind.PERSISTENCE_FAILURE,
                transaction=result.transaction,
                message=f"{result.message} Not saved: {exc}. Refresh required.",
            )
            self.events.emit("transactionFailed", failed)
            return failed

        self.events.emit("transactionCompleted", result)
        return result

    # ------------------------------------------------------------------
    # Limit orders
    # ------------------------------------------------------------------

    def place_limit_order(
        self,
        side: str,
        symbol: str,
        quantity: int,
        target_price: float,
        expires_at: datetime | None = None,
        portfolio_id: str | None = None,
    ) -> LimitOrder:
        portfolio = self.get_portfolio(portfolio_id)
        order = LimitOrder(
            portfolio_id=portfolio.portfolio_id,
            side=side,
            symbol=symbol.upper(),
            quantity=quantity,
            target_price=target_price,
            expires_at=expires_at,
        )
        return self.limit_orders.add(order, portfolio)

    def cancel_limit_order(self, order_id: str) -> LimitOrder:
        return self.limit_orders.cancel(order_id)

    async def check_limit_orders(self, now: datetime | None = None) -> list[LimitOrder]:
        async def _execute(order: LimitOrder) -> TradeResult:
            return await self._trade(order.side, order.symbol, order.quantity, order.portfolio_id)

        return await self.limit_orders.check(self._instruments, _execute, now)

    # ------------------------------------------------------------------
    # Ticking and timers
    # ------------------------------------------------------------------

    def tick_prices(self) -> dict[str, float]:
        """Advance every instrument one step; a bad instrument is logged and skipped."""
        prices: dict[str, float] = {}
        trend = self.market_trend.value
        for instrument in self.instrument_list():
            try:
                prices[instrument.symbol] = self.price_process.tick(instrument, trend)
            except Exception:
                logger.exception("Price tick failed for %s.", instrument.symbol)
        self.market_trend.maybe_reroll()
        self.tick_count += 1
        self.events.emit("priceUpdated", prices)
        return prices

    def roll_day(self) -> None:
        for instrument in self.instrument_list():
            self.price_process.roll_day(instrument)

    @property
    def running(self) -> bool:
        return self._price_timer.running

    def start(self) -> None:
        """Start price, news and limit-order timers. Restarting re-arms them."""
        intervals = self._config.scheduler
        self._price_timer.start(intervals.price_interval)
        self.news.start(intervals.news_interval)
        self._limit_timer.start(intervals.limit_order_interval)
        logger.info("Session started for user '%s'.", self._config.user_id)

    def stop(self) -> None:
        """Cancel every timer and shut the scheduler down."""
        self._price_timer.stop()
        self.news.stop()
        self._limit_timer.stop()
        self.scheduler.shutdown()
        logger.info("Session stopped after %d tick(s).", self.tick_count)
