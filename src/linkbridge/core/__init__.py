"""Core shared modules for linkbridge."""

from linkbridge.core.config import Settings
from linkbridge.core.errors import (
    ConfigPersistenceError,
    DeliveryFailure,
    InvalidRequestError,
    LinkBridgeError,
    TransportConstructionError,
)
from linkbridge.core.types import DisconnectReason, SessionStatus, Topic

__all__ = [
    "ConfigPersistenceError",
    "DeliveryFailure",
    "DisconnectReason",
    "InvalidRequestError",
    "LinkBridgeError",
    "SessionStatus",
    "Settings",
    "Topic",
    "TransportConstructionError",
]
