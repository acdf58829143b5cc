"""Tests for depth-walk fill simulation."""

import pytest

from streamhedge.domain.models import OrderSide
from streamhedge.domain.orderbook import DepthBook, simulate_market_fill


@pytest.fixture
def book():
    return DepthBook.from_levels(
        "RUJIUSD",
        bids=[["0.99", "10", "0"], ["0.95", "10", "0"]],
        asks=[["1.01", "10", "0"], ["1.05", "10", "0"]],
    )


class TestDepthBook:
    def test_best_levels(self, book):
        assert book.best_bid == 0.99
        assert book.best_ask == 1.01
        assert book.mid_price == pytest.approx(1.0)

    def test_buy_consumes_asks(self, book):
        assert book.levels_for(OrderSide.BUY)[0].price == 1.01
        assert book.levels_for(OrderSide.SELL)[0].price == 0.99


class TestSimulateMarketFill:
    """Tests for simulate_market_fill."""

    def test_single_level_fill(self, book):
        sim = simulate_market_fill(book, OrderSide.BUY, 5)

        assert sim.fully_filled
        assert sim.avg_price == pytest.approx(1.01)
        assert sim.slippage_pct == pytest.approx(0.0)

    def test_buy_walks_levels(self, book):
        """Volume-weighted across two ask levels; slippage positive."""
        sim = simulate_market_fill(book, OrderSide.BUY, 20)

        assert sim.avg_price == pytest.approx(1.03)
        assert sim.total_cost == pytest.approx(20.6)
        assert sim.slippage_pct == pytest.approx((1.03 - 1.01) / 1.01 * 100)

    def test_sell_slippage_is_positive_when_adverse(self, book):
        sim = simulate_market_fill(book, OrderSide.SELL, 20)

        assert sim.avg_price == pytest.approx(0.97)
        assert sim.slippage_pct > 0

    def test_partial_fill(self, book):
        sim = simulate_market_fill(book, OrderSide.BUY, 25)

        assert sim.filled_qty == pytest.approx(20)
        assert sim.executed
        assert not sim.fully_filled

    def test_empty_side(self):
        book = DepthBook.from_levels("RUJIUSD", bids=[], asks=[])
        sim = simulate_market_fill(book, OrderSide.BUY, 1)

        assert not sim.executed
        assert sim.avg_price == 0.0
