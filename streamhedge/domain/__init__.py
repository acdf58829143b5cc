"""
Domain module - Business models

Ledger actions, opportunities, trades, depth books and event payloads.
No I/O.
"""

from streamhedge.domain.models import (
    ActionStatus,
    AssetPair,
    ClassifiedSwap,
    Coin,
    Opportunity,
    OrderDetails,
    OrderResult,
    OrderSide,
    RawAction,
    Rejected,
    StreamingConfig,
    Trade,
    TradeDirection,
    TradeState,
    TxStatus,
    calculate_pnl,
)
from streamhedge.domain.orderbook import DepthBook, FillSimulation, simulate_market_fill

__all__ = [
    "ActionStatus",
    "AssetPair",
    "ClassifiedSwap",
    "Coin",
    "Opportunity",
    "OrderDetails",
    "OrderResult",
    "OrderSide",
    "RawAction",
    "Rejected",
    "StreamingConfig",
    "Trade",
    "TradeDirection",
    "TradeState",
    "TxStatus",
    "calculate_pnl",
    "DepthBook",
    "FillSimulation",
    "simulate_market_fill",
]
