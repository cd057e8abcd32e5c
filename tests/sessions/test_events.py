"""Tests for the lifecycle event bus."""

from __future__ import annotations

from linkbridge.core.types import Topic
from linkbridge.sessions.events import EventBus, LifecycleEvent


class TestEventBus:
    """Tests for EventBus."""

    def test_delivers_to_all_topics_by_default(self) -> None:
        """Should deliver every topic to an unfiltered subscriber."""
        bus = EventBus()
        received: list[LifecycleEvent] = []
        bus.subscribe(received.append)

        bus.publish(Topic.PAIRING_CODE, "s1", code="C")
        bus.publish(Topic.CONNECTION_OPENED, "s2")

        assert [(e.topic, e.session_id) for e in received] == [
            (Topic.PAIRING_CODE, "s1"),
            (Topic.CONNECTION_OPENED, "s2"),
        ]

    def test_filters_by_topic_and_session(self) -> None:
        """Should only deliver matching events."""
        bus = EventBus()
        received: list[LifecycleEvent] = []
        bus.subscribe(received.append, topics=[Topic.CONNECTION_CLOSED], session_id="s1")

        bus.publish(Topic.CONNECTION_CLOSED, "s2", status="disconnected")
        bus.publish(Topic.PAIRING_CODE, "s1", code="C")
        delivered = bus.publish(Topic.CONNECTION_CLOSED, "s1", status="unlinked")

        assert delivered == 1
        assert len(received) == 1
        assert received[0].status == "unlinked"

    def test_unsubscribe_stops_delivery(self) -> None:
        """Should stop delivering and tolerate a second unsubscribe."""
        bus = EventBus()
        received: list[LifecycleEvent] = []
        subscription = bus.subscribe(received.append, session_id="s1")

        subscription.unsubscribe()
        subscription.unsubscribe()
        bus.publish(Topic.STATUS_UPDATE, "s1", status="linking")

        assert received == []
        assert bus.subscriber_count("s1") == 0

    def test_subscription_as_context_manager(self) -> None:
        """Should release the subscription when the block ends."""
        bus = EventBus()

        with bus.subscribe(lambda event: None, session_id="s1"):
            assert bus.subscriber_count("s1") == 1

        assert bus.subscriber_count() == 0

    def test_failing_handler_does_not_affect_others(self) -> None:
        """Should log a handler error and still deliver to the rest."""
        bus = EventBus()
        received: list[LifecycleEvent] = []

        def broken(event: LifecycleEvent) -> None:
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)

        delivered = bus.publish(Topic.CONNECTION_OPENED, "s1")

        assert delivered == 1
        assert len(received) == 1

    def test_event_to_dict(self) -> None:
        """Should flatten the payload next to topic and session."""
        event = LifecycleEvent(Topic.PAIRING_CODE, "s1", {"code": "C"})

        assert event.to_dict() == {"topic": "pairing-code", "session_id": "s1", "code": "C"}
        assert event.status is None
