"""
Ledger Action Poller.

One poll fetches a batch of recent actions, announces each unseen
transaction id once and runs it through the detector. Batches are processed
in full and in ascending height order; the high-water mark is taken over
the whole batch after the loop.
"""

from dataclasses import dataclass, field
from typing import Optional

from streamhedge.arb.detector import DedupWindow, OpportunityDetector
from streamhedge.core.events import EventBus, Topic
from streamhedge.core.logging import LoggerMixin
from streamhedge.domain.events import ActionDetectedEvent
from streamhedge.domain.models import Opportunity
from streamhedge.providers.midgard import MidgardProvider


@dataclass
class PollResult:
    fetched: int = 0
    new_actions: int = 0
    skipped: int = 0
    errors: int = 0
    opportunities: list[Opportunity] = field(default_factory=list)
    last_height: Optional[int] = None


class ActionPoller(LoggerMixin):
    """Drives one poll cycle against the ledger index."""

    def __init__(
        self,
        source: MidgardProvider,
        detector: OpportunityDetector,
        bus: EventBus,
        limit: Optional[int] = None,
        seen: Optional[DedupWindow] = None,
    ):
        self.source = source
        self.detector = detector
        self.bus = bus
        self.limit = limit or source.settings.poll_limit
        self.seen = seen or DedupWindow(source.settings.dedup_capacity)
        self.last_height: Optional[int] = None
        self.polls = 0

    def poll(self) -> PollResult:
        """Fetch and process one batch. Never raises."""
        self.polls += 1
        result = PollResult()
        try:
            actions = self.source.get_recent_actions(limit=self.limit)
        except Exception as e:
            self.logger.error(f"Poll {self.polls} failed to fetch actions: {e}", exc_info=True)
            result.errors += 1
            return result

        result.fetched = len(actions)
        for action in actions:
            tx_id = action.tx_id
            if not tx_id:
                self.logger.warning(f"Skipping action at height {action.height} without txID")
                result.skipped += 1
                continue
            if not self.seen.add(tx_id):
                result.skipped += 1
                continue

            result.new_actions += 1
            try:
                self.bus.publish(Topic.ACTION_DETECTED, ActionDetectedEvent(action, action.height))
                opportunity = self.detector.on_action(action, action.height)
            except Exception as e:
                result.errors += 1
                self.logger.error(f"Failed to process action {tx_id}: {e}", exc_info=True)
                continue
            if opportunity is not None:
                result.opportunities.append(opportunity)

        if actions:
            batch_high = max(a.height for a in actions)
            if self.last_height is None or batch_high > self.last_height:
                self.last_height = batch_high
        result.last_height = self.last_height

        if result.new_actions:
            self.logger.info(
                f"Poll {self.polls}: {result.fetched} fetched, {result.new_actions} new, "
                f"{len(result.opportunities)} opportunities, height {self.last_height}"
            )
        else:
            self.logger.debug(f"Poll {self.polls}: nothing new (height {self.last_height})")
        return result
