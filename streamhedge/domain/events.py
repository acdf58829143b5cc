"""
Event payloads published on the event bus.

One payload class per topic; see core.events.Topic.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from streamhedge.domain.models import Opportunity, RawAction, Trade


@dataclass(frozen=True)
class ActionDetectedEvent:
    action: RawAction
    height: int


@dataclass(frozen=True)
class StreamSwapDetectedEvent:
    opportunity: Opportunity


@dataclass(frozen=True)
class ValidOpportunityDetectedEvent:
    opportunity: Opportunity


@dataclass(frozen=True)
class TradeExitScheduledEvent:
    trade_id: str
    exit_at: datetime
    duration_seconds: float


@dataclass(frozen=True)
class TradeExitCompletedEvent:
    trade_id: str
    trade: Trade
    pnl: float


@dataclass(frozen=True)
class TradeFailedEvent:
    trade_id: str
    trade: Trade
    reason: str
    position_open: bool = False
    opportunity: Optional[Opportunity] = None
