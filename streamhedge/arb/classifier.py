"""
Swap Classifier.

Turns one raw ledger action into a ClassifiedSwap (direction, size in USD,
estimated stream duration) or a Rejected value.

Direction is resolved by an ordered chain of pure functions; the first one
that returns an asset pair wins:
1. Transfers: first input coin vs first non-affiliate output coin
2. Pools: (pools[0], pools[1]) verbatim, for streams with no settled leg yet
3. Streaming metadata: recorded inCoin/outCoin
"""

import math
from typing import Callable, Optional, Sequence, Union

from streamhedge.core.config import Settings, get_settings
from streamhedge.core.errors import ClassificationError
from streamhedge.core.logging import LoggerMixin
from streamhedge.domain.models import (
    BASE_UNIT_DIVISOR,
    AssetPair,
    ClassifiedSwap,
    RawAction,
    Rejected,
    StreamingConfig,
    SwapMetadata,
    TradeDirection,
    TxStatus,
)

NOT_A_SWAP = "not_a_swap"
NOT_STREAMING = "not_streaming"
MISSING_STREAMING_META = "missing_streaming_meta"
MALFORMED_STREAMING_META = "malformed_streaming_meta"
NOT_TRACKED_ASSET = "not_tracked_asset"
DIRECTION_UNRESOLVED = "direction_unresolved"
MISSING_TX_ID = "missing_tx_id"

DirectionResolver = Callable[[RawAction], Optional[AssetPair]]
StatusLookup = Callable[[str], Optional[TxStatus]]


# ==============================================
# Parsing helpers
# ==============================================

def parse_decimal_int(value: Optional[str], field: str) -> int:
    """
    Parse a decimal-string integer field.

    Accepts base-10 integer strings and integral float strings ("10.0").

    Raises:
        ClassificationError: On empty, non-numeric, non-finite or fractional input
    """
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ClassificationError(f"Missing {field}", field=field)
    try:
        return int(text, 10)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError as e:
        raise ClassificationError(f"Non-numeric {field}: {text!r}", field=field) from e
    if not math.isfinite(number) or not number.is_integer():
        raise ClassificationError(f"Invalid {field}: {text!r}", field=field)
    return int(number)


def _safe_float(value: Optional[str]) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _positive_or_zero(value: float) -> float:
    return value if math.isfinite(value) and value > 0 else 0.0


def base_units_to_amount(value: Optional[str]) -> float:
    """Convert a 1e8 base-unit string to a float amount (0.0 when unusable)."""
    return _positive_or_zero(_safe_float(value) / BASE_UNIT_DIVISOR)


# ==============================================
# Direction resolvers
# ==============================================

def resolve_from_transfers(action: RawAction) -> Optional[AssetPair]:
    """First input coin vs first output coin that is not an affiliate fee."""
    in_coin = action.first_input_coin
    if not in_coin or not in_coin.asset:
        return None
    for tx in action.out_txs:
        for coin in tx.coins:
            # Output in the input asset is the affiliate fee leg
            if not coin.asset or coin.asset == in_coin.asset:
                continue
            return AssetPair(in_coin.asset, coin.asset)
    return None


def resolve_from_pools(action: RawAction) -> Optional[AssetPair]:
    """Source and destination pool, used verbatim."""
    if len(action.pools) < 2:
        return None
    return AssetPair(action.pools[0], action.pools[1])


def resolve_from_streaming_meta(action: RawAction) -> Optional[AssetPair]:
    meta = action.streaming_meta
    if not meta or not meta.in_coin or not meta.out_coin:
        return None
    if not meta.in_coin.asset or not meta.out_coin.asset:
        return None
    return AssetPair(meta.in_coin.asset, meta.out_coin.asset)


DIRECTION_RESOLVERS: tuple[DirectionResolver, ...] = (
    resolve_from_transfers,
    resolve_from_pools,
    resolve_from_streaming_meta,
)


def resolve_asset_pair(
    action: RawAction,
    resolvers: Sequence[DirectionResolver] = DIRECTION_RESOLVERS,
) -> Optional[AssetPair]:
    for resolver in resolvers:
        pair = resolver(action)
        if pair is not None:
            return pair
    return None


def direction_for(pair: AssetPair, tracked_asset: str) -> Optional[TradeDirection]:
    if pair.to_asset == tracked_asset:
        return TradeDirection.LONG
    if pair.from_asset == tracked_asset:
        return TradeDirection.SHORT
    return None


# ==============================================
# Sizing
# ==============================================

def size_from_status(status: Optional[TxStatus], in_price_usd: float) -> float:
    """First status coin amount times the input asset's USD price."""
    if status is None or not status.coins:
        return 0.0
    amount = base_units_to_amount(status.coins[0].amount)
    if amount <= 0 or not math.isfinite(in_price_usd) or in_price_usd <= 0:
        return 0.0
    return _positive_or_zero(amount * in_price_usd)


def size_from_swap_metadata(swap: Optional[SwapMetadata]) -> float:
    """max(deposited * in price, estimated output * out price)."""
    if swap is None or swap.streaming_meta is None:
        return 0.0
    meta = swap.streaming_meta
    deposited = base_units_to_amount(meta.deposited_coin.amount if meta.deposited_coin else None)
    estimated_out = base_units_to_amount(meta.out_estimation)
    in_side = deposited * _safe_float(swap.in_price_usd)
    out_side = estimated_out * _safe_float(swap.out_price_usd)
    return _positive_or_zero(max(_positive_or_zero(in_side), _positive_or_zero(out_side)))


class SwapClassifier(LoggerMixin):
    """Classifies ledger actions into streaming swaps on the tracked asset."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        status_lookup: Optional[StatusLookup] = None,
        resolvers: Sequence[DirectionResolver] = DIRECTION_RESOLVERS,
    ):
        self.settings = settings or get_settings()
        self.status_lookup = status_lookup
        self.resolvers = tuple(resolvers)

    @property
    def tracked_asset(self) -> str:
        return self.settings.tracked_asset

    def is_stream_swap(self, action: RawAction) -> bool:
        return (
            action.type == "swap"
            and action.swap is not None
            and action.swap.is_streaming_swap
            and action.swap.streaming_meta is not None
        )

    def involves_tracked_asset(self, action: RawAction) -> bool:
        tracked = self.tracked_asset
        for tx in action.in_txs + action.out_txs:
            if any(coin.asset == tracked for coin in tx.coins):
                return True
        symbol = tracked.split(".")[-1]
        if any(symbol in pool for pool in action.pools):
            return True
        meta = action.streaming_meta
        return bool(
            meta
            and any(c is not None and c.asset == tracked for c in (meta.in_coin, meta.out_coin))
        )

    def parse_streaming_config(self, action: RawAction) -> StreamingConfig:
        meta = action.streaming_meta
        if meta is None:
            raise ClassificationError("No streaming metadata", field="streamingSwapMeta")
        return StreamingConfig(
            count=parse_decimal_int(meta.count, "count"),
            interval=parse_decimal_int(meta.interval, "interval"),
            quantity=parse_decimal_int(meta.quantity, "quantity"),
        )

    def estimate_duration(self, streaming: StreamingConfig) -> float:
        """
        Seconds until the stream finishes.

        count x interval (blocks) x block time; the "quantity" basis is
        available through settings.duration_basis.
        """
        steps = streaming.quantity if self.settings.duration_basis == "quantity" else streaming.count
        return steps * streaming.interval * self.settings.block_time_seconds

    def estimate_size_usd(self, action: RawAction, tx_id: str) -> float:
        """Preferred: THORNode status amount. Fallback: swap metadata."""
        in_price = _safe_float(action.swap.in_price_usd if action.swap else None)

        if self.status_lookup is not None:
            try:
                status = self.status_lookup(tx_id)
            except Exception as e:
                self.logger.warning(f"Status lookup failed for {tx_id}, using feed sizing: {e}")
                status = None
            size = size_from_status(status, in_price)
            if size > 0:
                return size

        return size_from_swap_metadata(action.swap)

    def classify(self, action: RawAction) -> Union[ClassifiedSwap, Rejected]:
        if action.type != "swap":
            return Rejected(NOT_A_SWAP, f"type={action.type}")
        if action.swap is None or not action.swap.is_streaming_swap:
            return Rejected(NOT_STREAMING)
        if action.swap.streaming_meta is None:
            self.logger.warning(f"Streaming swap without streamingSwapMeta at height {action.height}")
            return Rejected(MISSING_STREAMING_META)

        tx_id = action.tx_id
        if not tx_id:
            self.logger.warning(f"Streaming swap at height {action.height} has no txID")
            return Rejected(MISSING_TX_ID)

        if not self.involves_tracked_asset(action):
            return Rejected(NOT_TRACKED_ASSET, tx_id)

        try:
            streaming = self.parse_streaming_config(action)
        except ClassificationError as e:
            self.logger.warning(f"Dropping {tx_id}: {e.message}")
            return Rejected(MALFORMED_STREAMING_META, e.message)

        pair = resolve_asset_pair(action, self.resolvers)
        if pair is None:
            self.logger.warning(f"Could not determine swap direction for tx: {tx_id}")
            return Rejected(DIRECTION_UNRESOLVED, tx_id)

        direction = direction_for(pair, self.tracked_asset)
        if direction is None:
            self.logger.warning(
                f"Resolved pair {pair.from_asset} -> {pair.to_asset} does not touch "
                f"{self.tracked_asset} for tx: {tx_id}"
            )
            return Rejected(DIRECTION_UNRESOLVED, tx_id)

        in_coin = action.first_input_coin
        return ClassifiedSwap(
            tx_id=tx_id,
            timestamp=action.timestamp,
            input_asset=pair.from_asset,
            output_asset=pair.to_asset,
            input_amount=in_coin.amount if in_coin else "0",
            size_usd=self.estimate_size_usd(action, tx_id),
            direction=direction,
            streaming=streaming,
            estimated_duration_seconds=self.estimate_duration(streaming),
            pools=action.pools,
            address=action.address,
            height=action.height,
            status=action.status,
        )
