"""
Stream swap arbitrage module.

Detects large streaming swaps on THORChain and trades the expected price
pressure on a centralized venue until the stream completes.
"""

from streamhedge.arb.classifier import SwapClassifier, DIRECTION_RESOLVERS
from streamhedge.arb.detector import DedupWindow, OpportunityDetector
from streamhedge.arb.engine import StreamSwapEngine
from streamhedge.arb.lifecycle import TradeLifecycleManager
from streamhedge.arb.planner import TradePlanner
from streamhedge.arb.poller import ActionPoller, PollResult

__all__ = [
    "SwapClassifier",
    "DIRECTION_RESOLVERS",
    "DedupWindow",
    "OpportunityDetector",
    "StreamSwapEngine",
    "TradeLifecycleManager",
    "TradePlanner",
    "ActionPoller",
    "PollResult",
]
