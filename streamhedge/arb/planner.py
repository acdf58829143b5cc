"""
Trade Planner.

Sizes a validated opportunity against the venue book, rejects thin or
expensive fills and submits the entry order.
"""

import uuid
from typing import Any, Optional, Union

from streamhedge.arb.lifecycle import TradeLifecycleManager
from streamhedge.core.config import TradeConfigService
from streamhedge.core.errors import StreamHedgeError
from streamhedge.core.logging import LoggerMixin
from streamhedge.domain.models import (
    Opportunity,
    OrderDetails,
    OrderSide,
    Rejected,
    Trade,
    TradeDirection,
    TradeState,
)
from streamhedge.domain.orderbook import DepthBook, FillSimulation, simulate_market_fill

DEPTH_UNAVAILABLE = "depth_unavailable"
INSUFFICIENT_LIQUIDITY = "insufficient_liquidity"
SLIPPAGE = "slippage"
EXIT_WINDOW_TOO_SHORT = "exit_window_too_short"
ENTRY_FAILED = "entry_failed"
DUPLICATE = "duplicate"


def side_for(direction: TradeDirection) -> OrderSide:
    return OrderSide.BUY if direction is TradeDirection.LONG else OrderSide.SELL


class TradePlanner(LoggerMixin):
    """Converts an opportunity into a confirmed entry handed to the lifecycle manager."""

    def __init__(
        self,
        depth: Any,
        execution: Any,
        lifecycle: TradeLifecycleManager,
        trade_config: TradeConfigService,
        pair: str,
    ):
        self.depth = depth
        self.execution = execution
        self.lifecycle = lifecycle
        self.trade_config = trade_config
        self.pair = pair

    def _fetch_book(self) -> Optional[DepthBook]:
        try:
            return self.depth.get_order_book(self.pair)
        except StreamHedgeError as e:
            self.logger.warning(f"Depth fetch for {self.pair} failed: {e}")
            return None

    def target_quantity(self, book: Optional[DepthBook]) -> Optional[float]:
        """
        Fixed notional divided by mid price.

        Without a usable book, falls back to the configured minimal quantity
        or returns None when the depth policy is ``abort``.
        """
        config = self.trade_config.current
        mid = book.mid_price if book is not None else None
        if mid and mid > 0:
            return config.trade_size_usd / mid
        if config.depth_failure_policy == "abort":
            return None
        self.logger.warning(f"Using fallback quantity {config.fallback_trade_qty}")
        return config.fallback_trade_qty

    def check_fill(self, book: DepthBook, side: OrderSide, qty: float) -> Union[FillSimulation, Rejected]:
        simulation = simulate_market_fill(book, side, qty)
        if not simulation.fully_filled:
            return Rejected(
                INSUFFICIENT_LIQUIDITY,
                f"book fills {simulation.filled_qty:.6f} of {qty:.6f}",
            )
        max_slippage = self.trade_config.current.max_slippage_pct
        if simulation.slippage_pct > max_slippage:
            return Rejected(
                SLIPPAGE,
                f"slippage {simulation.slippage_pct:.2f}% exceeds {max_slippage:.2f}%",
            )
        return simulation

    def _reject(self, trade: Trade, rejection: Rejected) -> Rejected:
        trade.fail(rejection.reason)
        self.logger.info(f"Plan for {trade.id} rejected: {rejection.reason} {rejection.message}".rstrip())
        return rejection

    def plan(self, opportunity: Opportunity) -> Union[Trade, Rejected]:
        """
        Build, check and submit the entry leg for ``opportunity``.

        Returns:
            The confirmed trade (now owned by the lifecycle manager) or Rejected
        """
        if self.lifecycle.knows(opportunity.tx_id):
            return Rejected(DUPLICATE, opportunity.tx_id)

        trade = Trade(id=opportunity.tx_id, direction=opportunity.direction, pair=self.pair)
        side = side_for(opportunity.direction)

        if self.lifecycle.exit_delay(opportunity) <= 0:
            return self._reject(
                trade,
                Rejected(
                    EXIT_WINDOW_TOO_SHORT,
                    f"duration {opportunity.estimated_duration_seconds:.0f}s inside exit buffer",
                ),
            )

        book = self._fetch_book()
        qty = self.target_quantity(book)
        if qty is None:
            return self._reject(trade, Rejected(DEPTH_UNAVAILABLE, "depth policy is abort"))
        if book is None:
            book = self._fetch_book()
            if book is None:
                return self._reject(trade, Rejected(DEPTH_UNAVAILABLE, "no book to check liquidity"))

        checked = self.check_fill(book, side, qty)
        if isinstance(checked, Rejected):
            return self._reject(trade, checked)

        trade.transition(TradeState.PLANNED)
        dry_run = self.trade_config.current.dry_run
        self.logger.info(
            f"Entering {opportunity.direction.value} {self.pair}: {side.value} {qty:.6f} "
            f"(est. fill {checked.avg_price:.6f}, slippage {checked.slippage_pct:.2f}%)"
            + (" [DRY RUN]" if dry_run else "")
        )

        try:
            trade.transition(TradeState.SUBMITTED)
            result = self.execution.place_market_order(side, qty, dry_run=dry_run)
        except Exception as e:
            trade.fail(f"entry failed: {e}")
            detail = e.to_dict() if isinstance(e, StreamHedgeError) else {"message": str(e)}
            self.logger.error(f"Entry order for {trade.id} failed: {detail}")
            return Rejected(ENTRY_FAILED, str(e))

        entry = OrderDetails(
            order_id=result.order_id or f"unknown_{uuid.uuid4().hex[:8]}",
            side=side,
            qty=qty,
            price=result.avg_price or checked.avg_price,
            simulated=result.simulated,
        )
        trade.transition(TradeState.CONFIRMED)
        return self.lifecycle.open(opportunity, entry, trade)
