"""Tests for the trade planner."""

import pytest

from streamhedge.arb.lifecycle import TradeLifecycleManager
from streamhedge.arb.planner import (
    DEPTH_UNAVAILABLE,
    DUPLICATE,
    ENTRY_FAILED,
    EXIT_WINDOW_TOO_SHORT,
    INSUFFICIENT_LIQUIDITY,
    SLIPPAGE,
    TradePlanner,
)
from streamhedge.core.errors import ExecutionError, ProviderError
from streamhedge.domain.models import OrderSide, Rejected, Trade, TradeDirection, TradeState


class TestTradePlanner:
    """Tests for TradePlanner.plan."""

    @pytest.fixture
    def lifecycle(self, execution, scheduler, trade_config, bus):
        return TradeLifecycleManager(execution, scheduler, trade_config, bus, pair="RUJIUSD")

    @pytest.fixture
    def planner(self, depth, execution, lifecycle, trade_config):
        return TradePlanner(depth, execution, lifecycle, trade_config, pair="RUJIUSD")

    def test_long_enters_with_buy(self, planner, execution, scheduler, make_opportunity):
        """$5 at mid 1.00 buys 5 units and schedules the exit."""
        trade = planner.plan(make_opportunity(duration=60))

        assert isinstance(trade, Trade)
        assert trade.state == TradeState.CONFIRMED
        side, qty = execution.place_market_order.call_args.args
        assert side == OrderSide.BUY
        assert qty == pytest.approx(5.0)
        assert execution.place_market_order.call_args.kwargs["dry_run"] is True
        assert trade.entry_order.price == 1.0
        assert scheduler.handles[0].delay == pytest.approx(50.0)

    def test_short_enters_with_sell(self, planner, execution, make_opportunity):
        trade = planner.plan(make_opportunity(direction=TradeDirection.SHORT))

        assert trade.entry_side == OrderSide.SELL
        assert execution.place_market_order.call_args.args[0] == OrderSide.SELL

    def test_insufficient_liquidity(self, planner, depth, execution, trade_config, make_book, make_opportunity):
        """1500 units against 1000 on the ask side is rejected."""
        depth.get_order_book.return_value = make_book(
            bids=[["1.00", "5000", "0"]],
            asks=[["1.00", "600", "0"], ["1.00", "400", "0"]],
        )
        trade_config.update(trade_size_usd=1500)

        result = planner.plan(make_opportunity())

        assert isinstance(result, Rejected)
        assert result.reason == INSUFFICIENT_LIQUIDITY
        execution.place_market_order.assert_not_called()

    def test_excess_slippage(self, planner, depth, execution, make_book, make_opportunity):
        """Walking into a 20% worse level exceeds the 5% limit."""
        depth.get_order_book.return_value = make_book(
            bids=[["0.98", "100", "0"]],
            asks=[["1.00", "1", "0"], ["1.20", "100", "0"]],
        )

        result = planner.plan(make_opportunity())

        assert isinstance(result, Rejected)
        assert result.reason == SLIPPAGE
        execution.place_market_order.assert_not_called()

    def test_depth_failure_uses_fallback_qty(self, planner, depth, execution, make_book, make_opportunity):
        """A failed sizing fetch trades the minimal quantity."""
        depth.get_order_book.side_effect = [
            ProviderError("timeout", provider="kraken_depth"),
            make_book(),
        ]

        trade = planner.plan(make_opportunity())

        assert isinstance(trade, Trade)
        assert execution.place_market_order.call_args.args[1] == pytest.approx(0.001)

    def test_depth_failure_abort_policy(self, planner, depth, execution, trade_config, make_opportunity):
        trade_config.update(depth_failure_policy="abort")
        depth.get_order_book.side_effect = ProviderError("timeout", provider="kraken_depth")

        result = planner.plan(make_opportunity())

        assert isinstance(result, Rejected)
        assert result.reason == DEPTH_UNAVAILABLE
        execution.place_market_order.assert_not_called()

    def test_depth_unavailable_for_liquidity_check(self, planner, depth, execution, make_opportunity):
        """Fallback sizing still needs a book to check the fill."""
        depth.get_order_book.side_effect = ProviderError("timeout", provider="kraken_depth")

        result = planner.plan(make_opportunity())

        assert isinstance(result, Rejected)
        assert result.reason == DEPTH_UNAVAILABLE
        execution.place_market_order.assert_not_called()

    def test_short_stream_rejected_before_entry(self, planner, depth, execution, make_opportunity):
        """An 8s stream with a 10s buffer never sends an entry."""
        result = planner.plan(make_opportunity(duration=8))

        assert isinstance(result, Rejected)
        assert result.reason == EXIT_WINDOW_TOO_SHORT
        depth.get_order_book.assert_not_called()
        execution.place_market_order.assert_not_called()

    def test_entry_failure(self, planner, execution, scheduler, make_opportunity):
        """A rejected entry schedules nothing."""
        execution.place_market_order.side_effect = ExecutionError("rejected", provider="kraken")

        result = planner.plan(make_opportunity())

        assert isinstance(result, Rejected)
        assert result.reason == ENTRY_FAILED
        assert scheduler.handles == []

    def test_one_trade_per_tx(self, planner, execution, make_opportunity):
        """Planning the same opportunity twice places one entry."""
        planner.plan(make_opportunity(tx_id="X"))
        result = planner.plan(make_opportunity(tx_id="X"))

        assert isinstance(result, Rejected)
        assert result.reason == DUPLICATE
        assert execution.place_market_order.call_count == 1

    def test_live_mode_passed_through(self, planner, execution, trade_config, make_opportunity):
        trade_config.set_dry_run(False)
        planner.plan(make_opportunity())
        assert execution.place_market_order.call_args.kwargs["dry_run"] is False
