"""
Venue depth book and market-fill simulation.

Walking the book is shared by the planner's liquidity check and the
execution client's dry-run mode.
"""

from dataclasses import dataclass
from typing import Any, Optional

from streamhedge.domain.models import OrderSide

# Quantities below this are treated as filled (float accumulation noise).
FILL_EPSILON = 1e-12


@dataclass(frozen=True)
class PriceLevel:
    price: float
    volume: float


@dataclass(frozen=True)
class DepthBook:
    """Best-N bid/ask levels; bids descending, asks ascending."""
    pair: str
    bids: tuple[PriceLevel, ...]
    asks: tuple[PriceLevel, ...]

    @classmethod
    def from_levels(
        cls,
        pair: str,
        bids: list[list[Any]],
        asks: list[list[Any]],
    ) -> "DepthBook":
        """
        Build from venue rows ``[price, volume, ...]`` (strings or numbers).

        Raises:
            ValueError: On non-numeric rows
        """
        return cls(
            pair=pair,
            bids=tuple(PriceLevel(float(row[0]), float(row[1])) for row in bids),
            asks=tuple(PriceLevel(float(row[0]), float(row[1])) for row in asks),
        )

    @property
    def best_bid(self) -> Optional[float]:
        return self.bids[0].price if self.bids else None

    @property
    def best_ask(self) -> Optional[float]:
        return self.asks[0].price if self.asks else None

    @property
    def mid_price(self) -> Optional[float]:
        if self.best_bid is None or self.best_ask is None:
            return None
        return (self.best_bid + self.best_ask) / 2

    def levels_for(self, side: OrderSide) -> tuple[PriceLevel, ...]:
        """A buy consumes asks, a sell consumes bids."""
        return self.asks if side is OrderSide.BUY else self.bids


@dataclass(frozen=True)
class FillSimulation:
    side: OrderSide
    requested_qty: float
    filled_qty: float
    avg_price: float
    total_cost: float       # buy: quote spent, sell: quote received
    slippage_pct: float     # positive = adverse

    @property
    def executed(self) -> bool:
        return self.filled_qty > 0

    @property
    def fully_filled(self) -> bool:
        return self.requested_qty - self.filled_qty <= FILL_EPSILON * max(1.0, self.requested_qty)


def simulate_market_fill(book: DepthBook, side: OrderSide, qty: float) -> FillSimulation:
    """
    Walk the book for a market order of ``qty`` base units.

    Accumulates volume-weighted price level by level until the quantity is
    satisfied or the side is exhausted. Slippage is the signed percentage
    distance of the average price from the best level, positive when the
    fill is worse than the top of book.
    """
    levels = book.levels_for(side)
    remaining = qty
    total_cost = 0.0
    filled = 0.0

    for level in levels:
        if remaining <= 0:
            break
        take = min(level.volume, remaining)
        if take <= 0:
            continue
        total_cost += take * level.price
        filled += take
        remaining -= take

    if filled == 0 or not levels:
        return FillSimulation(side, qty, 0.0, 0.0, 0.0, 0.0)

    avg_price = total_cost / filled
    best = levels[0].price
    direction = 1 if side is OrderSide.BUY else -1
    slippage_pct = ((avg_price - best) / best) * 100 * direction if best > 0 else 0.0

    return FillSimulation(
        side=side,
        requested_qty=qty,
        filled_qty=filled,
        avg_price=avg_price,
        total_cost=total_cost,
        slippage_pct=slippage_pct,
    )
