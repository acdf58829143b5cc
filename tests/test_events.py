"""Tests for the in-process event bus."""

from streamhedge.core.events import EventBus, Topic


class TestEventBus:
    """Tests for EventBus."""

    def test_topic_names(self):
        assert Topic.VALID_OPPORTUNITY_DETECTED.value == "validopportunity.detected"
        assert Topic.TRADE_EXIT_COMPLETED.value == "trade.exit.completed"

    def test_delivery_in_subscription_order(self):
        bus = EventBus()
        calls = []
        bus.subscribe(Topic.ACTION_DETECTED, lambda e: calls.append(("first", e)))
        bus.subscribe(Topic.ACTION_DETECTED, lambda e: calls.append(("second", e)))

        assert bus.publish(Topic.ACTION_DETECTED, 1) == 2
        assert calls == [("first", 1), ("second", 1)]

    def test_failing_listener_isolated(self):
        """A raising listener neither propagates nor blocks the others."""
        bus = EventBus()
        calls = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.subscribe(Topic.TRADE_FAILED, broken)
        bus.subscribe(Topic.TRADE_FAILED, calls.append)

        assert bus.publish(Topic.TRADE_FAILED, "x") == 1
        assert calls == ["x"]

    def test_no_listeners(self):
        assert EventBus().publish(Topic.STREAMSWAP_DETECTED, None) == 0
