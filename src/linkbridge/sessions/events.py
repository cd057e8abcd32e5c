"""Publish/subscribe bus for session lifecycle events.

Subscribers register a handler for a set of topics, optionally narrowed to
one session id, and receive a Subscription they must release when their
own lifetime ends (for example when a relay WebSocket closes).

Handlers are plain callables invoked synchronously by ``publish``. A
handler that needs to do I/O should hand the event to its own queue. A
failing handler is logged and never affects the publisher or other
subscribers.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from linkbridge.core.types import Topic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LifecycleEvent:
    """A published lifecycle event.

    Attributes:
        topic: Event topic.
        session_id: Session the event concerns.
        payload: Topic-specific data (``code`` or ``status``).
    """

    topic: Topic
    session_id: str
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def status(self) -> str | None:
        return self.payload.get("status")

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict."""
        return {"topic": self.topic.value, "session_id": self.session_id, **self.payload}


EventHandler = Callable[[LifecycleEvent], None]


class Subscription:
    """Handle returned by EventBus.subscribe.

    Usable as a context manager; leaving the block unsubscribes.
    """

    def __init__(
        self,
        bus: EventBus,
        handler: EventHandler,
        topics: frozenset[Topic],
        session_id: str | None,
    ) -> None:
        self._bus = bus
        self.handler = handler
        self.topics = topics
        self.session_id = session_id
        self.active = True

    def matches(self, event: LifecycleEvent) -> bool:
        """Check whether this subscription wants an event."""
        if event.topic not in self.topics:
            return False
        return self.session_id is None or self.session_id == event.session_id

    def unsubscribe(self) -> None:
        """Stop receiving events. Safe to call more than once."""
        if self.active:
            self.active = False
            self._bus._remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.unsubscribe()


class EventBus:
    """Topic- and session-keyed publish/subscribe bus."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._lock = threading.Lock()

    def subscribe(
        self,
        handler: EventHandler,
        topics: Iterable[Topic] | None = None,
        session_id: str | None = None,
    ) -> Subscription:
        """Register a handler.

        Args:
            handler: Called with every matching event.
            topics: Topics to receive (default: all).
            session_id: Only receive events for this session (default: all).

        Returns:
            The subscription; call ``unsubscribe()`` to release it.
        """
        subscription = Subscription(
            self,
            handler,
            frozenset(topics) if topics is not None else frozenset(Topic),
            session_id,
        )
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def publish(self, topic: Topic, session_id: str, **payload: Any) -> int:
        """Deliver an event to every matching subscriber.

        Returns:
            Number of handlers that received the event.
        """
        event = LifecycleEvent(topic=topic, session_id=session_id, payload=payload)
        with self._lock:
            targets = [s for s in self._subscriptions if s.matches(event)]

        delivered = 0
        for subscription in targets:
            try:
                subscription.handler(event)
                delivered += 1
            except Exception:
                logger.exception(
                    "[%s] Event handler failed for %s", session_id, topic.value
                )
        logger.debug("[%s] Published %s to %d subscriber(s)", session_id, topic.value, delivered)
        return delivered

    def subscriber_count(self, session_id: str | None = None) -> int:
        """Count active subscriptions, optionally for one session."""
        with self._lock:
            if session_id is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions if s.session_id == session_id)
