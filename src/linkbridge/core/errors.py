"""Exception hierarchy for linkbridge."""

from __future__ import annotations


class LinkBridgeError(Exception):
    """Base class for linkbridge errors."""


class ConfigPersistenceError(LinkBridgeError):
    """Reading or writing the persisted session list failed."""


class TransportConstructionError(LinkBridgeError):
    """The transport provider could not create a handle for a session."""

    def __init__(self, session_id: str, message: str) -> None:
        super().__init__(f"[{session_id}] {message}")
        self.session_id = session_id


class DeliveryFailure(LinkBridgeError):
    """Sending a queued document through a transport handle failed."""

    def __init__(self, task_id: str, message: str) -> None:
        super().__init__(message)
        self.task_id = task_id


class InvalidRequestError(LinkBridgeError, ValueError):
    """A caller supplied a malformed session id or delivery request."""
