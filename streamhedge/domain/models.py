"""
Core data models for streamhedge.

All models use dataclass and provide to_dict() for JSON serialization.
Ledger models mirror the Midgard action payload; amounts stay as the
decimal strings the indexer sends (base units, 1e8) until a consumer
parses them.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from streamhedge.core.errors import InvalidTransitionError
from streamhedge.core.timeutil import from_epoch_ns, now_utc

BASE_UNIT_DIVISOR = 100_000_000


class ActionStatus(str, Enum):
    """Ledger settlement status of an action."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class TradeDirection(str, Enum):
    """
    Direction of the detected stream swap relative to the tracked asset.

    long  = counter-asset -> tracked asset
    short = tracked asset -> counter-asset
    """
    LONG = "long"
    SHORT = "short"


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "OrderSide":
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


# ==============================================
# Ledger
# ==============================================

@dataclass(frozen=True)
class Coin:
    asset: str
    amount: str = "0"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["Coin"]:
        if not data:
            return None
        return cls(asset=str(data.get("asset", "")), amount=str(data.get("amount", "0")))


@dataclass(frozen=True)
class ActionTx:
    """One inbound or outbound transfer of an action."""
    address: str
    coins: tuple[Coin, ...]
    tx_id: str
    height: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionTx":
        coins = tuple(
            coin for coin in (Coin.from_dict(c) for c in data.get("coins") or []) if coin
        )
        return cls(
            address=str(data.get("address", "")),
            coins=coins,
            tx_id=str(data.get("txID", "")),
            height=data.get("height"),
        )


@dataclass(frozen=True)
class StreamingSwapMeta:
    """Streaming parameters exactly as transmitted (decimal strings)."""
    count: str
    interval: str
    quantity: str
    last_height: Optional[str] = None
    deposited_coin: Optional[Coin] = None
    in_coin: Optional[Coin] = None
    out_coin: Optional[Coin] = None
    out_estimation: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["StreamingSwapMeta"]:
        if not data:
            return None
        return cls(
            count=str(data.get("count", "")),
            interval=str(data.get("interval", "")),
            quantity=str(data.get("quantity", "")),
            last_height=data.get("lastHeight"),
            deposited_coin=Coin.from_dict(data.get("depositedCoin")),
            in_coin=Coin.from_dict(data.get("inCoin")),
            out_coin=Coin.from_dict(data.get("outCoin")),
            out_estimation=data.get("outEstimation"),
        )


@dataclass(frozen=True)
class SwapMetadata:
    is_streaming_swap: bool = False
    in_price_usd: str = "0"
    out_price_usd: str = "0"
    streaming_meta: Optional[StreamingSwapMeta] = None
    memo: str = ""
    affiliate_address: str = ""

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Optional["SwapMetadata"]:
        if not data:
            return None
        return cls(
            is_streaming_swap=data.get("isStreamingSwap") is True,
            in_price_usd=str(data.get("inPriceUSD", "0")),
            out_price_usd=str(data.get("outPriceUSD", "0")),
            streaming_meta=StreamingSwapMeta.from_dict(data.get("streamingSwapMeta")),
            memo=str(data.get("memo", "")),
            affiliate_address=str(data.get("affiliateAddress", "")),
        )


@dataclass(frozen=True)
class RawAction:
    """
    One ledger action as returned by the indexer.

    Immutable once fetched.
    """
    type: str
    status: str
    in_txs: tuple[ActionTx, ...]
    out_txs: tuple[ActionTx, ...]
    swap: Optional[SwapMetadata]
    pools: tuple[str, ...]
    height: int
    date_ns: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RawAction":
        """
        Parse a Midgard action.

        Raises:
            ValueError: If height or date are not integer strings
        """
        metadata = data.get("metadata") or {}
        return cls(
            type=str(data.get("type", "")),
            status=str(data.get("status", "")),
            in_txs=tuple(ActionTx.from_dict(t) for t in data.get("in") or []),
            out_txs=tuple(ActionTx.from_dict(t) for t in data.get("out") or []),
            swap=SwapMetadata.from_dict(metadata.get("swap")),
            pools=tuple(str(p) for p in data.get("pools") or []),
            height=int(str(data.get("height", "0")), 10),
            date_ns=int(str(data.get("date", "0")), 10),
        )

    @property
    def tx_id(self) -> Optional[str]:
        """Transaction id of the first inbound transfer."""
        if self.in_txs and self.in_txs[0].tx_id:
            return self.in_txs[0].tx_id
        return None

    @property
    def address(self) -> str:
        return self.in_txs[0].address if self.in_txs else ""

    @property
    def first_input_coin(self) -> Optional[Coin]:
        if self.in_txs and self.in_txs[0].coins:
            return self.in_txs[0].coins[0]
        return None

    @property
    def timestamp(self) -> datetime:
        return from_epoch_ns(self.date_ns)

    @property
    def streaming_meta(self) -> Optional[StreamingSwapMeta]:
        return self.swap.streaming_meta if self.swap else None


@dataclass(frozen=True)
class TxStatus:
    """Authoritative transaction status from THORNode (only what sizing needs)."""
    tx_id: str
    coins: tuple[Coin, ...] = ()
    stage_done: Optional[bool] = None


@dataclass(frozen=True)
class AssetPair:
    from_asset: str
    to_asset: str


@dataclass(frozen=True)
class StreamingConfig:
    count: int
    interval: int
    quantity: int


# ==============================================
# Detection
# ==============================================

@dataclass(frozen=True)
class Rejected:
    """A business or data-quality rejection. Not an error."""
    reason: str
    message: str = ""


@dataclass(frozen=True)
class ClassifiedSwap:
    tx_id: str
    timestamp: datetime
    input_asset: str
    output_asset: str
    input_amount: str
    size_usd: float
    direction: TradeDirection
    streaming: StreamingConfig
    estimated_duration_seconds: float
    pools: tuple[str, ...]
    address: str
    height: int
    status: str


@dataclass(frozen=True)
class Opportunity:
    """
    A stream swap built once per transaction id. Never mutated.
    """
    tx_id: str
    detected_at: datetime
    timestamp: datetime
    input_asset: str
    output_asset: str
    input_amount: str
    size_usd: float
    direction: TradeDirection
    estimated_duration_seconds: float
    pools: tuple[str, ...]
    address: str
    height: int
    status: str
    streaming: StreamingConfig

    @classmethod
    def from_classified(cls, swap: ClassifiedSwap) -> "Opportunity":
        return cls(
            tx_id=swap.tx_id,
            detected_at=now_utc(),
            timestamp=swap.timestamp,
            input_asset=swap.input_asset,
            output_asset=swap.output_asset,
            input_amount=swap.input_amount,
            size_usd=swap.size_usd,
            direction=swap.direction,
            estimated_duration_seconds=swap.estimated_duration_seconds,
            pools=swap.pools,
            address=swap.address,
            height=swap.height,
            status=swap.status,
            streaming=swap.streaming,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == ActionStatus.PENDING.value

    @property
    def input_amount_units(self) -> float:
        """Input amount converted from base units."""
        try:
            return int(self.input_amount, 10) / BASE_UNIT_DIVISOR
        except ValueError:
            return 0.0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["detected_at"] = self.detected_at.isoformat()
        data["timestamp"] = self.timestamp.isoformat()
        data["direction"] = self.direction.value
        data["pools"] = list(self.pools)
        return data


# ==============================================
# Orders and trades
# ==============================================

@dataclass
class OrderResult:
    """Venue response to a market order (live or simulated)."""
    order_id: str
    side: OrderSide
    qty: float
    status: str
    avg_price: Optional[float] = None
    description: str = ""
    filled: Optional[float] = None
    cost: Optional[float] = None
    fee: Optional[float] = None
    simulated: bool = False


@dataclass
class OrderDetails:
    """One executed leg of a trade."""
    order_id: str
    side: OrderSide
    qty: float
    price: float
    timestamp: datetime = field(default_factory=now_utc)
    status: str = "executed"
    simulated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "side": self.side.value,
            "qty": self.qty,
            "price": self.price,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "simulated": self.simulated,
        }


class TradeState(str, Enum):
    DETECTED = "detected"
    PLANNED = "planned"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    EXITING = "exiting"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TradeState.COMPLETED, TradeState.FAILED)


_NEXT_STATE = {
    TradeState.DETECTED: TradeState.PLANNED,
    TradeState.PLANNED: TradeState.SUBMITTED,
    TradeState.SUBMITTED: TradeState.CONFIRMED,
    TradeState.CONFIRMED: TradeState.EXITING,
    TradeState.EXITING: TradeState.COMPLETED,
}


def calculate_pnl(entry: OrderDetails, exit_price: float) -> float:
    """
    Realized PnL of closing ``entry`` at ``exit_price``.

    Buy entry: (exit - entry) * qty. Sell entry: (entry - exit) * qty.
    """
    if entry.side is OrderSide.BUY:
        return (exit_price - entry.price) * entry.qty
    return (entry.price - exit_price) * entry.qty


@dataclass
class Trade:
    """
    Mutable trade keyed by the opportunity's transaction id.

    States only move forward one step at a time; ``failed`` is reachable
    from any non-terminal state.
    """
    id: str
    direction: TradeDirection
    pair: str
    state: TradeState = TradeState.DETECTED
    entry_order: Optional[OrderDetails] = None
    exit_order: Optional[OrderDetails] = None
    pnl: Optional[float] = None
    error: Optional[str] = None
    created_at: datetime = field(default_factory=now_utc)
    updated_at: datetime = field(default_factory=now_utc)
    history: list[tuple[str, str]] = field(default_factory=list)

    def __post_init__(self):
        if not self.history:
            self.history.append((self.state.value, self.created_at.isoformat()))

    @property
    def entry_side(self) -> OrderSide:
        return OrderSide.BUY if self.direction is TradeDirection.LONG else OrderSide.SELL

    def transition(self, target: TradeState) -> None:
        """
        Move to ``target``.

        Raises:
            InvalidTransitionError: If the move is not the next forward state
        """
        if self.state.is_terminal or (
            target is not TradeState.FAILED and _NEXT_STATE.get(self.state) is not target
        ):
            raise InvalidTransitionError(
                f"Trade {self.id}: cannot move {self.state.value} -> {target.value}",
                trade_id=self.id,
                current=self.state.value,
                target=target.value,
            )
        self.state = target
        self.updated_at = now_utc()
        self.history.append((target.value, self.updated_at.isoformat()))

    def fail(self, reason: str) -> None:
        """Mark the trade failed unless it already reached a terminal state."""
        if self.state.is_terminal:
            return
        self.error = reason
        self.transition(TradeState.FAILED)

    def complete(self, exit_order: OrderDetails) -> float:
        """Record the exit leg, realize PnL and finish the trade."""
        if self.entry_order is None:
            raise InvalidTransitionError(
                f"Trade {self.id} has no entry order",
                trade_id=self.id,
                current=self.state.value,
                target=TradeState.COMPLETED.value,
            )
        self.exit_order = exit_order
        self.pnl = calculate_pnl(self.entry_order, exit_order.price)
        self.transition(TradeState.COMPLETED)
        return self.pnl

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "direction": self.direction.value,
            "pair": self.pair,
            "state": self.state.value,
            "entry_order": self.entry_order.to_dict() if self.entry_order else None,
            "exit_order": self.exit_order.to_dict() if self.exit_order else None,
            "pnl": self.pnl,
            "error": self.error,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "history": [list(h) for h in self.history],
        }
