"""
In-process event bus.

Each topic has an explicit, enumerable set of listeners registered at
startup. Delivery is synchronous on the publisher's thread; a failing
listener is logged and never affects the publisher or other listeners.
"""

import threading
from collections import defaultdict
from enum import Enum
from typing import Any, Callable

from streamhedge.core.logging import get_logger

logger = get_logger("events")

Listener = Callable[[Any], None]


class Topic(str, Enum):
    """Topics produced by the detection and trade pipeline."""
    ACTION_DETECTED = "action.detected"
    STREAMSWAP_DETECTED = "streamswap.detected"
    VALID_OPPORTUNITY_DETECTED = "validopportunity.detected"
    TRADE_EXIT_SCHEDULED = "trade.exit.scheduled"
    TRADE_EXIT_COMPLETED = "trade.exit.completed"
    TRADE_FAILED = "trade.failed"


class EventBus:
    """Typed publish/subscribe dispatcher."""

    def __init__(self):
        self._listeners: dict[Topic, list[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, topic: Topic, listener: Listener) -> None:
        """Register a listener for a topic."""
        with self._lock:
            self._listeners[Topic(topic)].append(listener)
        logger.debug(f"Listener {getattr(listener, '__qualname__', listener)} subscribed to {topic.value}")

    def listeners(self, topic: Topic) -> list[Listener]:
        with self._lock:
            return list(self._listeners.get(Topic(topic), []))

    def publish(self, topic: Topic, payload: Any) -> int:
        """
        Deliver payload to every listener of topic.

        Returns:
            Number of listeners that handled the event without raising
        """
        delivered = 0
        for listener in self.listeners(topic):
            try:
                listener(payload)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Listener {getattr(listener, '__qualname__', listener)} failed on {topic.value}: {e}",
                    exc_info=True,
                )
        return delivered
