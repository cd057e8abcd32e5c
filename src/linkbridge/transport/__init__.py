"""Messaging transport abstractions and the gateway bridge implementation."""

from linkbridge.transport.base import (
    EventListener,
    TransportEvent,
    TransportEventKind,
    TransportHandle,
    TransportProvider,
)
from linkbridge.transport.bridge import BridgeTransport, BridgeTransportProvider

__all__ = [
    "BridgeTransport",
    "BridgeTransportProvider",
    "EventListener",
    "TransportEvent",
    "TransportEventKind",
    "TransportHandle",
    "TransportProvider",
]
