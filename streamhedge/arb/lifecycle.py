"""
Trade Lifecycle Manager.

Owns open trades from confirmed entry to exit: schedules the offsetting
market order ahead of the stream's end, reconciles the fill price and
realizes PnL.
"""

import threading
from datetime import timedelta
from typing import Any, Optional, Protocol

from cachetools import FIFOCache

from streamhedge.core.config import TradeConfigService
from streamhedge.core.errors import ProviderError
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import LoggerMixin
from streamhedge.core.timeutil import now_utc
from streamhedge.domain.events import (
    TradeExitCompletedEvent,
    TradeExitScheduledEvent,
    TradeFailedEvent,
)
from streamhedge.domain.models import (
    OrderDetails,
    Opportunity,
    OrderResult,
    Trade,
    TradeState,
)


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, func: Any, *args: Any) -> Any: ...


def exit_delay_seconds(opportunity: Opportunity, exit_buffer_seconds: float) -> float:
    """Seconds from now until the exit leg should fire."""
    return opportunity.estimated_duration_seconds - exit_buffer_seconds


class TradeLifecycleManager(LoggerMixin):
    """Schedules, executes and accounts for exit legs."""

    def __init__(
        self,
        execution: Any,
        scheduler: Scheduler,
        trade_config: TradeConfigService,
        bus: EventBus,
        pair: str,
        history_size: int = 1000,
    ):
        self.execution = execution
        self.scheduler = scheduler
        self.trade_config = trade_config
        self.bus = bus
        self.pair = pair
        self._active: dict[str, Trade] = {}
        self._handles: dict[str, Any] = {}
        self._closed: FIFOCache = FIFOCache(maxsize=history_size)
        self._lock = threading.RLock()

    def exit_delay(self, opportunity: Opportunity) -> float:
        return exit_delay_seconds(opportunity, self.trade_config.current.exit_buffer_seconds)

    def knows(self, trade_id: str) -> bool:
        with self._lock:
            return trade_id in self._active or trade_id in self._closed

    def active_trades(self) -> list[Trade]:
        with self._lock:
            return list(self._active.values())

    def get_trade(self, trade_id: str) -> Optional[Trade]:
        with self._lock:
            return self._active.get(trade_id) or self._closed.get(trade_id)

    def open(
        self,
        opportunity: Opportunity,
        entry_order: OrderDetails,
        trade: Optional[Trade] = None,
    ) -> Trade:
        """
        Take ownership of a confirmed trade and schedule its exit.

        A non-positive exit window fails the trade immediately.
        """
        if trade is None:
            trade = Trade(id=opportunity.tx_id, direction=opportunity.direction, pair=self.pair)
            trade.entry_order = entry_order
            for state in (TradeState.PLANNED, TradeState.SUBMITTED, TradeState.CONFIRMED):
                trade.transition(state)
        else:
            trade.entry_order = entry_order

        with self._lock:
            if self.knows(trade.id):
                self.logger.warning(f"Trade {trade.id} already tracked, ignoring duplicate open")
                return self._active.get(trade.id) or self._closed[trade.id]

            delay = self.exit_delay(opportunity)
            if delay <= 0:
                self.logger.info(
                    f"Abandoning trade {trade.id}: stream ends in "
                    f"{opportunity.estimated_duration_seconds:.0f}s, inside the exit buffer"
                )
                trade.fail("exit window too short")
                self._closed[trade.id] = trade
                self.bus.publish(
                    Topic.TRADE_FAILED,
                    TradeFailedEvent(
                        trade_id=trade.id,
                        trade=trade,
                        reason="exit window too short",
                        position_open=True,
                        opportunity=opportunity,
                    ),
                )
                return trade

            self._active[trade.id] = trade
            self._handles[trade.id] = self.scheduler.schedule(delay, self._execute_exit, trade.id)

        exit_at = now_utc() + timedelta(seconds=delay)
        self.logger.info(f"Trade {trade.id} opened, exit scheduled in {delay:.1f}s")
        self.bus.publish(
            Topic.TRADE_EXIT_SCHEDULED,
            TradeExitScheduledEvent(trade_id=trade.id, exit_at=exit_at, duration_seconds=delay),
        )
        return trade

    def _reconcile_exit_price(self, trade: Trade, result: OrderResult) -> float:
        if result.avg_price:
            return result.avg_price

        try:
            status = self.execution.get_order_status(result.order_id)
        except ProviderError as e:
            # the exit order was accepted; only its price is unknown
            self.logger.warning(f"Status query for exit {result.order_id} failed: {e}")
            status = None
        if status is not None and status.avg_price:
            return status.avg_price

        self.logger.warning(
            f"No fill price for exit {result.order_id} of trade {trade.id}, using entry price"
        )
        return trade.entry_order.price

    def _execute_exit(self, trade_id: str) -> None:
        with self._lock:
            trade = self._active.pop(trade_id, None)
            self._handles.pop(trade_id, None)
        if trade is None:
            return

        entry = trade.entry_order
        try:
            trade.transition(TradeState.EXITING)
            side = entry.side.opposite
            result = self.execution.place_market_order(
                side, entry.qty, dry_run=self.trade_config.current.dry_run
            )
            exit_order = OrderDetails(
                order_id=result.order_id,
                side=side,
                qty=entry.qty,
                price=self._reconcile_exit_price(trade, result),
                simulated=result.simulated,
            )
            pnl = trade.complete(exit_order)
        except Exception as e:
            trade.fail(f"exit failed: {e}")
            self.logger.error(
                f"Exit for trade {trade_id} failed, position left open: {e}", exc_info=True
            )
            with self._lock:
                self._closed[trade_id] = trade
            self.bus.publish(
                Topic.TRADE_FAILED,
                TradeFailedEvent(
                    trade_id=trade_id, trade=trade, reason=trade.error or str(e), position_open=True
                ),
            )
            return

        with self._lock:
            self._closed[trade_id] = trade
        self.logger.info(
            f"Trade {trade_id} completed: entry {entry.price:.6f} exit {exit_order.price:.6f} "
            f"qty {entry.qty:.6f} pnl {pnl:+.6f}"
        )
        self.bus.publish(
            Topic.TRADE_EXIT_COMPLETED,
            TradeExitCompletedEvent(trade_id=trade_id, trade=trade, pnl=pnl),
        )

    def cancel_exit(self, trade_id: str) -> bool:
        """Cancel a still-pending exit. The trade is failed and the position stays open."""
        with self._lock:
            handle = self._handles.get(trade_id)
            if handle is None or not handle.cancel():
                return False
            self._handles.pop(trade_id, None)
            trade = self._active.pop(trade_id)
            trade.fail("exit cancelled")
            self._closed[trade_id] = trade

        self.logger.warning(f"Exit for trade {trade_id} cancelled, position left open")
        self.bus.publish(
            Topic.TRADE_FAILED,
            TradeFailedEvent(trade_id=trade_id, trade=trade, reason="exit cancelled", position_open=True),
        )
        return True

    def shutdown(self) -> int:
        """Cancel every pending exit; returns how many were cancelled."""
        with self._lock:
            pending = list(self._handles)
        cancelled = sum(1 for trade_id in pending if self.cancel_exit(trade_id))
        if cancelled:
            self.logger.warning(f"Shutdown cancelled {cancelled} pending exit(s)")
        return cancelled
