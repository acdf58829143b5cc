"""
Opportunity Detector.

Classifies each action, emits a stream-swap event at most once per
transaction id and forwards pending swaps that pass the size and duration
thresholds.
"""

import threading
from typing import Optional

from cachetools import FIFOCache

from streamhedge.arb.classifier import NOT_A_SWAP, NOT_STREAMING, NOT_TRACKED_ASSET, SwapClassifier
from streamhedge.core.config import TradeConfigService
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import LoggerMixin
from streamhedge.domain.events import StreamSwapDetectedEvent, ValidOpportunityDetectedEvent
from streamhedge.domain.models import Opportunity, RawAction, Rejected

_ROUTINE_REJECTIONS = frozenset({NOT_A_SWAP, NOT_STREAMING, NOT_TRACKED_ASSET})


class DedupWindow:
    """
    Bounded set of recently seen transaction ids.

    Oldest ids are evicted first once capacity is reached.
    """

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ids: FIFOCache = FIFOCache(maxsize=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return int(self._ids.maxsize)

    def __contains__(self, tx_id: str) -> bool:
        with self._lock:
            return tx_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def add(self, tx_id: str) -> bool:
        """Insert ``tx_id``; returns False if it was already present."""
        with self._lock:
            if tx_id in self._ids:
                return False
            self._ids[tx_id] = True
            return True


class OpportunityDetector(LoggerMixin):
    """Turns raw actions into validated opportunities."""

    def __init__(
        self,
        classifier: SwapClassifier,
        trade_config: TradeConfigService,
        bus: EventBus,
        dedup: Optional[DedupWindow] = None,
    ):
        self.classifier = classifier
        self.trade_config = trade_config
        self.bus = bus
        self.dedup = dedup or DedupWindow(classifier.settings.dedup_capacity)
        self.stats = {"classified": 0, "rejected": 0, "duplicates": 0, "dropped": 0, "valid": 0}

    def passes_thresholds(self, opportunity: Opportunity) -> bool:
        config = self.trade_config.current
        if opportunity.size_usd < config.min_opportunity_size_usd:
            self.logger.info(
                f"Dropping {opportunity.tx_id}: size ${opportunity.size_usd:,.2f} "
                f"below ${config.min_opportunity_size_usd:,.2f}"
            )
            return False
        if opportunity.estimated_duration_seconds < config.min_opportunity_duration_s:
            self.logger.info(
                f"Dropping {opportunity.tx_id}: duration {opportunity.estimated_duration_seconds:.0f}s "
                f"below {config.min_opportunity_duration_s:.0f}s"
            )
            return False
        return True

    def on_action(self, action: RawAction, height: Optional[int] = None) -> Optional[Opportunity]:
        """
        Process one action.

        Returns:
            The opportunity forwarded for trading, or None
        """
        result = self.classifier.classify(action)
        if isinstance(result, Rejected):
            self.stats["rejected"] += 1
            if result.reason not in _ROUTINE_REJECTIONS:
                self.logger.debug(f"Rejected action at height {action.height}: {result.reason}")
            return None

        self.stats["classified"] += 1
        if not self.dedup.add(result.tx_id):
            self.stats["duplicates"] += 1
            return None

        opportunity = Opportunity.from_classified(result)
        self.logger.info(
            f"Stream swap {opportunity.tx_id}: {opportunity.direction.value} "
            f"{opportunity.input_asset} -> {opportunity.output_asset}, "
            f"${opportunity.size_usd:,.2f}, ~{opportunity.estimated_duration_seconds:.0f}s"
        )
        self.bus.publish(Topic.STREAMSWAP_DETECTED, StreamSwapDetectedEvent(opportunity))

        if not self.passes_thresholds(opportunity):
            self.stats["dropped"] += 1
            return None
        if not opportunity.is_pending:
            self.logger.info(f"Dropping {opportunity.tx_id}: ledger status is {opportunity.status}")
            self.stats["dropped"] += 1
            return None

        self.stats["valid"] += 1
        self.bus.publish(
            Topic.VALID_OPPORTUNITY_DETECTED, ValidOpportunityDetectedEvent(opportunity)
        )
        return opportunity
