"""Session lifecycle: registry, controller, event bus and persistence."""

from linkbridge.sessions.controller import SessionController
from linkbridge.sessions.credentials import CredentialStore
from linkbridge.sessions.events import EventBus, LifecycleEvent, Subscription
from linkbridge.sessions.registry import Session, SessionRegistry
from linkbridge.sessions.store import SessionConfigStore, SessionRecord

__all__ = [
    "CredentialStore",
    "EventBus",
    "LifecycleEvent",
    "Session",
    "SessionConfigStore",
    "SessionController",
    "SessionRecord",
    "SessionRegistry",
    "Subscription",
]
