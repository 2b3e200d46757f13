"""Tests for the holdings ledger: cost basis, validation, cash conservation."""

import random

import pytest

from models.config import LedgerConfig
from models.instrument import Instrument
from models.transaction import TradeErrorKind
from simulation.ledger import HoldingsLedger
from simulation.valuation import valuate


@pytest.fixture
def ledger() -> HoldingsLedger:
    return HoldingsLedger(LedgerConfig(initial_balance=500.0))


@pytest.fixture
def stock() -> Instrument:
    return Instrument(symbol="AAPL", company_name="Apple Inc.", sector="Technology", price=100.0)


def _state(portfolio):
    return (
        portfolio.cash_balance,
        {s: h.model_dump() for s, h in portfolio.holdings.items()},
        len(portfolio.transaction_history),
    )


class TestScenarios:
    def test_basic_round_trip(self, ledger, stock):
        pf = ledger.new_portfolio()
        assert ledger.buy(pf, stock, 2).ok
        assert pf.cash_balance == pytest.approx(300.0)

        stock.price = 150.0
        result = ledger.sell(pf, stock, 1)
        assert result.ok
        assert result.transaction.realized_pl == pytest.approx(50.0)

        holding = pf.holdings["AAPL"]
        assert holding.quantity == 1
        assert holding.avg_price_paid == pytest.approx(100.0)
        assert holding.total_cost_basis == pytest.approx(100.0)

        valuation = valuate(pf, {"AAPL": stock})
        assert valuation.portfolio_value == pytest.approx(150.0)
        assert valuation.total_assets == pytest.approx(600.0)
        assert valuation.earnings == pytest.approx(100.0)
        assert valuation.percent_return == pytest.approx(20.0)

    def test_weighted_average_buy(self, ledger, stock):
        pf = ledger.new_portfolio()
        ledger.buy(pf, stock, 1)
        stock.price = 200.0
        ledger.buy(pf, stock, 1)
        holding = pf.holdings["AAPL"]
        assert holding.quantity == 2
        assert holding.avg_price_paid == pytest.approx(150.0)
        assert holding.total_cost_basis == pytest.approx(300.0)
        assert pf.cash_balance == pytest.approx(200.0)

    def test_proportional_sell_keeps_average(self, stock):
        ledger = HoldingsLedger(LedgerConfig(initial_balance=10_000.0))
        pf = ledger.new_portfolio()
        ledger.buy(pf, stock, 3)
        stock.price = 200.0
        ledger.buy(pf, stock, 1)
        assert pf.holdings["AAPL"].avg_price_paid == pytest.approx(125.0)

        stock.price = 90.0
        result = ledger.sell(pf, stock, 2)
        holding = pf.holdings["AAPL"]
        assert holding.quantity == 2
        assert holding.total_cost_basis == pytest.approx(250.0)
        assert holding.avg_price_paid == pytest.approx(125.0)
        assert result.transaction.realized_pl == pytest.approx(180.0 - 250.0)

    def test_sell_to_zero_removes_holding(self, ledger, stock):
        pf = ledger.new_portfolio()
        ledger.buy(pf, stock, 3)
        result = ledger.sell(pf, stock, 3)
        assert result.ok
        assert "AAPL" not in pf.holdings
        assert pf.cash_balance == pytest.approx(500.0)

    def test_transactions_recorded(self, ledger, stock):
        pf = ledger.new_portfolio()
        ledger.buy(pf, stock, 2)
        ledger.sell(pf, stock, 1)
        buy, sell = pf.transaction_history
        assert (buy.type, buy.quantity, buy.total_value) == ("BUY", 2, 200.0)
        assert (sell.type, sell.quantity, sell.total_value) == ("SELL", 1, 100.0)
        assert buy.company_name == "Apple Inc."
        assert buy.realized_pl is None


class TestRejections:
    def test_insufficient_funds_leaves_state(self, ledger, stock):
        pf = ledger.new_portfolio()
        before = _state(pf)
        result = ledger.buy(pf, stock, 6)
        assert result.status == "rejected"
        assert result.error == TradeErrorKind.INSUFFICIENT_FUNDS
        assert _state(pf) == before

    def test_exact_cash_allowed(self, ledger, stock):
        pf = ledger.new_portfolio()
        assert ledger.buy(pf, stock, 5).ok
        assert pf.cash_balance == pytest.approx(0.0)

    def test_insufficient_shares_leaves_state(self, ledger, stock):
        pf = ledger.new_portfolio()
        ledger.buy(pf, stock, 2)
        before = _state(pf)
        result = ledger.sell(pf, stock, 3)
        assert result.error == TradeErrorKind.INSUFFICIENT_SHARES
        assert _state(pf) == before

    def test_sell_without_holding(self, ledger, stock):
        pf = ledger.new_portfolio()
        result = ledger.sell(pf, stock, 1)
        assert result.error == TradeErrorKind.INSUFFICIENT_SHARES
        assert pf.transaction_history == []

    @pytest.mark.parametrize("quantity", [0, -1, 101, 2.5, True, "3", None])
    def test_invalid_quantity(self, ledger, stock, quantity):
        pf = ledger.new_portfolio()
        before = _state(pf)
        for apply in (ledger.buy, ledger.sell):
            result = apply(pf, stock, quantity)
            assert result.error == TradeErrorKind.INVALID_QUANTITY
        assert _state(pf) == before

    def test_unknown_instrument(self, ledger):
        pf = ledger.new_portfolio()
        result = ledger.buy(pf, None, 1)
        assert result.error == TradeErrorKind.UNKNOWN_INSTRUMENT

    def test_max_quantity_boundary(self, stock):
        ledger = HoldingsLedger(LedgerConfig(initial_balance=1_000_000.0))
        pf = ledger.new_portfolio()
        assert ledger.buy(pf, stock, 100).ok
        assert ledger.buy(pf, stock, 101).error == TradeErrorKind.INVALID_QUANTITY


class TestBookkeeping:
    def test_cash_conservation_and_non_negative_holdings(self):
        rng = random.Random(7)
        ledger = HoldingsLedger(LedgerConfig(initial_balance=5_000.0))
        pf = ledger.new_portfolio()
        stocks = {
            s: Instrument(symbol=s, sector="X", price=p)
            for s, p in (("AAA", 20.0), ("BBB", 55.0), ("CCC", 130.0))
        }
        for _ in range(500):
            inst = rng.choice(list(stocks.values()))
            inst.price = max(1.0, inst.price * (1 + rng.uniform(-0.05, 0.05)))
            if rng.random() < 0.5:
                ledger.buy(pf, inst, rng.randint(1, 10))
            else:
                ledger.sell(pf, inst, rng.randint(1, 10))

            assert pf.cash_balance >= -1e-9
            assert all(h.quantity > 0 for h in pf.holdings.values())

        spent = sum(t.total_value for t in pf.transaction_history if t.type == "BUY")
        received = sum(t.total_value for t in pf.transaction_history if t.type == "SELL")
        assert pf.cash_balance == pytest.approx(5_000.0 - spent + received)

        for symbol, holding in pf.holdings.items():
            bought = sum(t.quantity for t in pf.transaction_history if t.symbol == symbol and t.type == "BUY")
            sold = sum(t.quantity for t in pf.transaction_history if t.symbol == symbol and t.type == "SELL")
            assert holding.quantity == bought - sold
            assert holding.avg_price_paid == pytest.approx(holding.total_cost_basis / holding.quantity)

    def test_new_portfolio_balance(self, ledger):
        pf = ledger.new_portfolio("Side", 1_000.0)
        assert pf.name == "Side"
        assert pf.cash_balance == pf.initial_balance == 1_000.0
        assert ledger.new_portfolio().initial_balance == 500.0
