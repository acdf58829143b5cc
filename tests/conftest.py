"""Shared fixtures for streamhedge tests."""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from unittest.mock import Mock

import pytest

from streamhedge.core.config import Settings, TradeConfig, TradeConfigService
from streamhedge.core.events import EventBus
from streamhedge.core.timeutil import now_utc
from streamhedge.domain.models import (
    Opportunity,
    OrderResult,
    OrderSide,
    RawAction,
    StreamingConfig,
    TradeDirection,
)
from streamhedge.domain.orderbook import DepthBook


@dataclass
class FakeHandle:
    job_id: str
    delay: float
    func: Callable
    args: tuple
    cancelled: bool = False
    fired: bool = False

    def cancel(self) -> bool:
        if self.cancelled or self.fired:
            return False
        self.cancelled = True
        return True


@dataclass
class ManualScheduler:
    """Scheduler double: jobs only run when the test fires them."""
    handles: list[FakeHandle] = field(default_factory=list)
    jobs: dict[str, tuple] = field(default_factory=dict)
    running: bool = False

    def schedule(self, delay_seconds: float, func: Callable, *args: Any) -> FakeHandle:
        handle = FakeHandle(f"job{len(self.handles)}", delay_seconds, func, args)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def add_interval_job(self, name: str, func: Callable, seconds: float) -> str:
        self.jobs[name] = (func, seconds)
        return name

    def remove_job(self, name: str) -> bool:
        return self.jobs.pop(name, None) is not None

    def start(self) -> None:
        self.running = True

    def stop(self, wait: bool = True) -> None:
        self.running = False

    def run_pending(self) -> int:
        ran = 0
        for handle in self.pending:
            handle.fired = True
            handle.func(*handle.args)
            ran += 1
        return ran


@pytest.fixture
def settings():
    """Settings isolated from the local .env."""
    return Settings(
        _env_file=None,
        tracked_asset="THOR.RUJI",
        block_time_seconds=6.0,
        kraken_pair="RUJI/USD",
        kraken_api_key=None,
        kraken_private_key=None,
        database_url="sqlite:///:memory:",
        telegram_enabled=False,
    )


@pytest.fixture
def trade_config():
    return TradeConfigService(
        TradeConfig(
            min_opportunity_size_usd=100,
            min_opportunity_duration_s=30,
            trade_size_usd=5,
            max_slippage_pct=5.0,
            exit_buffer_seconds=10,
            dry_run=True,
        )
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def scheduler():
    return ManualScheduler()


def _depth_book(
    bids: Optional[list] = None,
    asks: Optional[list] = None,
    pair: str = "RUJIUSD",
) -> DepthBook:
    bids = bids if bids is not None else [["0.99", "1000", "0"], ["0.98", "1000", "0"]]
    asks = asks if asks is not None else [["1.01", "1000", "0"], ["1.02", "1000", "0"]]
    return DepthBook.from_levels(pair, bids, asks)


@pytest.fixture
def make_book():
    """Factory for depth books given [price, volume, ts] rows."""
    return _depth_book


@pytest.fixture
def depth(make_book):
    provider = Mock()
    provider.get_order_book.return_value = make_book()
    return provider


@pytest.fixture
def execution():
    """Execution client whose orders fill at a fixed price."""
    client = Mock()

    def place(side: OrderSide, qty: float, dry_run: bool = True, pair: Optional[str] = None):
        return OrderResult(
            order_id=f"order-{side.value}-{client.place_market_order.call_count}",
            side=side,
            qty=qty,
            status="closed",
            avg_price=1.0,
            simulated=dry_run,
        )

    client.place_market_order.side_effect = place
    client.get_order_status.return_value = None
    return client


def _action_dict(
    tx_id: str = "TX1",
    height: int = 100,
    status: str = "pending",
    in_asset: str = "THOR.RUNE",
    in_amount: str = "10000000000",
    out_asset: str = "THOR.RUJI",
    streaming: bool = True,
    count: str = "10",
    interval: str = "1",
    quantity: str = "5",
    in_price: str = "1.5",
    out_price: str = "0.5",
    deposited: Optional[str] = None,
    out_estimation: str = "0",
    out_coins: Optional[list[tuple[str, str]]] = None,
    pools: Optional[list[str]] = None,
    meta_coins: bool = True,
    action_type: str = "swap",
    include_meta: bool = True,
) -> dict[str, Any]:
    meta: Optional[dict[str, Any]] = None
    if include_meta:
        meta = {
            "count": count,
            "interval": interval,
            "quantity": quantity,
            "lastHeight": str(height),
            "depositedCoin": {"asset": in_asset, "amount": deposited or in_amount},
            "outEstimation": out_estimation,
        }
        if meta_coins:
            meta["inCoin"] = {"asset": in_asset, "amount": in_amount}
            meta["outCoin"] = {"asset": out_asset, "amount": "0"}

    out_txs = []
    if out_coins:
        out_txs.append({
            "address": "thor1dest",
            "txID": "",
            "coins": [{"asset": a, "amount": amt} for a, amt in out_coins],
        })

    return {
        "type": action_type,
        "status": status,
        "height": str(height),
        "date": "1700000000000000000",
        "pools": pools if pools is not None else ["THOR.RUJI"],
        "in": [{
            "address": "thor1sender",
            "txID": tx_id,
            "coins": [{"asset": in_asset, "amount": in_amount}],
        }],
        "out": out_txs,
        "metadata": {
            "swap": {
                "isStreamingSwap": streaming,
                "inPriceUSD": in_price,
                "outPriceUSD": out_price,
                "streamingSwapMeta": meta,
            }
        },
    }


@pytest.fixture
def make_action_dict():
    """Factory for Midgard action payloads."""
    return _action_dict


@pytest.fixture
def make_action():
    """Factory for parsed RawAction objects."""
    return lambda **kwargs: RawAction.from_dict(_action_dict(**kwargs))


def _opportunity(
    tx_id: str = "TX1",
    direction: TradeDirection = TradeDirection.LONG,
    duration: float = 60.0,
    size_usd: float = 5000.0,
    status: str = "pending",
) -> Opportunity:
    long = direction is TradeDirection.LONG
    return Opportunity(
        tx_id=tx_id,
        detected_at=now_utc(),
        timestamp=now_utc(),
        input_asset="THOR.RUNE" if long else "THOR.RUJI",
        output_asset="THOR.RUJI" if long else "THOR.RUNE",
        input_amount="100000000000",
        size_usd=size_usd,
        direction=direction,
        estimated_duration_seconds=duration,
        pools=("THOR.RUJI",),
        address="thor1sender",
        height=100,
        status=status,
        streaming=StreamingConfig(count=10, interval=1, quantity=10),
    )


@pytest.fixture
def make_opportunity():
    """Factory for opportunities without going through classification."""
    return _opportunity
