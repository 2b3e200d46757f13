"""Tests for the shared pydantic models and YAML config loading.

Tests cover:
1. Config defaults and YAML loading
2. Instrument symbol normalisation and day change
3. Custom instrument request validation
4. Transaction totals and immutability
5. TradeResult helpers
6. Portfolio snapshots and limit-order triggers
"""

import pytest
from pydantic import ValidationError

from models import (
    EPSILON,
    CustomInstrumentRequest,
    Holding,
    Instrument,
    LimitOrder,
    NewsStory,
    Portfolio,
    SimulationConfig,
    TradeErrorKind,
    TradeResult,
    Transaction,
)


# ---------------------------------------------------------------
# Config
# ---------------------------------------------------------------

class TestSimulationConfig:
    def test_defaults(self):
        config = SimulationConfig()
        assert config.price.sentiment_coefficient == 0.005
        assert config.price.decay_factor == 0.95
        assert config.price.history_capacity == 100
        assert config.news.history_size == 50
        assert config.ledger.initial_balance == 500.0
        assert config.ledger.max_quantity_per_trade == 100
        assert config.seed is None

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "quick.yaml"
        path.write_text(
            "num_ticks: 10\n"
            "seed: 3\n"
            "price:\n"
            "  decay_factor: 0.9\n"
            "ledger:\n"
            "  initial_balance: 1000\n",
            encoding="utf-8",
        )
        config = SimulationConfig.from_yaml(path)
        assert config.num_ticks == 10
        assert config.seed == 3
        assert config.price.decay_factor == 0.9
        assert config.price.history_capacity == 100  # untouched default
        assert config.ledger.initial_balance == 1000.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            SimulationConfig.from_yaml(tmp_path / "nope.yaml")

    def test_non_mapping_yaml(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            SimulationConfig.from_yaml(path)

    def test_out_of_range_value_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(price={"decay_factor": 1.5})


# ---------------------------------------------------------------
# Instruments
# ---------------------------------------------------------------

class TestInstrument:
    def test_symbol_upper_cased(self):
        inst = Instrument(symbol=" aapl ", price=10.0)
        assert inst.symbol == "AAPL"

    def test_day_high_low_unset(self):
        inst = Instrument(symbol="X", price=10.0)
        assert inst.day_high is None
        assert inst.day_low is None

    def test_non_positive_price_rejected(self):
        with pytest.raises(ValidationError):
            Instrument(symbol="X", price=0.0)

    def test_day_change(self):
        inst = Instrument(symbol="X", price=110.0, open_price=100.0)
        value, pct = inst.day_change()
        assert value == pytest.approx(10.0)
        assert pct == pytest.approx(10.0)

    def test_day_change_without_open(self):
        inst = Instrument(symbol="X", price=110.0)
        assert inst.day_change() == (0.0, 0.0)

    def test_epsilon(self):
        assert EPSILON == 0.01


class TestCustomInstrumentRequest:
    def test_valid_request(self):
        req = CustomInstrumentRequest(symbol="acme", company_name="Acme Corp", initial_price=12.5)
        assert req.symbol == "ACME"
        assert req.sector == "Custom"
        assert req.volatility == 0.015

    def test_blank_sector_defaults(self):
        req = CustomInstrumentRequest(symbol="AC", company_name="Acme", initial_price=1.0, sector="  ")
        assert req.sector == "Custom"

    @pytest.mark.parametrize("symbol", ["", "TOOLONG", "AB1", "A-B"])
    def test_bad_symbol(self, symbol):
        with pytest.raises(ValidationError):
            CustomInstrumentRequest(symbol=symbol, company_name="Acme", initial_price=1.0)

    def test_missing_company_name(self):
        with pytest.raises(ValidationError):
            CustomInstrumentRequest(symbol="ACME", company_name="", initial_price=1.0)

    def test_non_positive_price(self):
        with pytest.raises(ValidationError):
            CustomInstrumentRequest(symbol="ACME", company_name="Acme", initial_price=0)

    def test_non_positive_volatility(self):
        with pytest.raises(ValidationError):
            CustomInstrumentRequest(symbol="ACME", company_name="Acme", initial_price=1, volatility=0)


# ---------------------------------------------------------------
# Transactions and results
# ---------------------------------------------------------------

class TestTransaction:
    def test_total_value_derived(self):
        txn = Transaction(type="BUY", symbol="AAPL", quantity=3, price_per_unit=10.5)
        assert txn.total_value == pytest.approx(31.5)
        assert txn.transaction_id.startswith("txn-")
        assert txn.realized_pl is None

    def test_explicit_total_kept(self):
        txn = Transaction(type="SELL", symbol="AAPL", quantity=1, price_per_unit=10.0, total_value=10.0)
        assert txn.total_value == 10.0

    def test_immutable(self):
        txn = Transaction(type="BUY", symbol="AAPL", quantity=1, price_per_unit=10.0)
        with pytest.raises(ValidationError):
            txn.quantity = 5

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            Transaction(type="BUY", symbol="AAPL", quantity=0, price_per_unit=10.0)

    def test_unique_ids(self):
        a = Transaction(type="BUY", symbol="AAPL", quantity=1, price_per_unit=1.0)
        b = Transaction(type="BUY", symbol="AAPL", quantity=1, price_per_unit=1.0)
        assert a.transaction_id != b.transaction_id


class TestTradeResult:
    def test_rejected_helper(self):
        result = TradeResult.rejected(TradeErrorKind.INSUFFICIENT_FUNDS, "no cash")
        assert result.status == "rejected"
        assert not result.ok
        assert result.transaction is None
        assert result.error == TradeErrorKind.INSUFFICIENT_FUNDS

    def test_error_kind_values(self):
        assert TradeErrorKind.PERSISTENCE_FAILURE.value == "persistence_failure"

    def test_persistence_failure_is_not_ok(self):
        result = TradeResult(status="persistence_failed", error=TradeErrorKind.PERSISTENCE_FAILURE)
        assert not result.ok


# ---------------------------------------------------------------
# Portfolio, news and limit orders
# ---------------------------------------------------------------

class TestPortfolio:
    def test_snapshot_is_a_copy(self):
        pf = Portfolio(initial_balance=500.0, cash_balance=300.0)
        pf.holdings["AAPL"] = Holding(symbol="AAPL", quantity=2, avg_price_paid=100.0, total_cost_basis=200.0)
        snap = pf.snapshot()
        pf.holdings["AAPL"].quantity = 1
        assert snap.holdings["AAPL"].quantity == 2
        assert snap.cash_balance == 300.0

    def test_quantity_of(self):
        pf = Portfolio(initial_balance=500.0, cash_balance=500.0)
        assert pf.quantity_of("AAPL") == 0

    def test_separate_default_containers(self):
        a = Portfolio(initial_balance=1.0, cash_balance=1.0)
        b = Portfolio(initial_balance=1.0, cash_balance=1.0)
        a.holdings["X"] = Holding(symbol="X", quantity=1, avg_price_paid=1.0, total_cost_basis=1.0)
        assert b.holdings == {}
        assert a.portfolio_id != b.portfolio_id


class TestNewsStory:
    @pytest.mark.parametrize(
        "impact,tone",
        [(0.05, "positive"), (-0.02, "negative"), (0.0, "neutral")],
    )
    def test_tone(self, impact, tone):
        story = NewsStory(headline="h", category="market", impact=impact, affected_target="market")
        assert story.tone == tone


class TestLimitOrder:
    def test_buy_triggers_at_or_below_target(self):
        order = LimitOrder(portfolio_id="p", side="buy", symbol="AAPL", quantity=1, target_price=100.0)
        assert order.is_triggered(100.0)
        assert order.is_triggered(99.0)
        assert not order.is_triggered(100.01)

    def test_sell_triggers_at_or_above_target(self):
        order = LimitOrder(portfolio_id="p", side="sell", symbol="AAPL", quantity=1, target_price=100.0)
        assert order.is_triggered(100.0)
        assert order.is_triggered(120.0)
        assert not order.is_triggered(99.99)

    def test_defaults(self):
        order = LimitOrder(portfolio_id="p", side="buy", symbol="AAPL", quantity=1, target_price=1.0)
        assert order.status == "active"
        assert order.order_id.startswith("order-")
        assert order.closed_at is None
