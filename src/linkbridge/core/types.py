"""Shared types for linkbridge.

This module defines the enums used by the session controller, the
delivery queue and the relay endpoints.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class SessionStatus(str, Enum):
    """Lifecycle status of a linked-device session.

    The happy path is INITIALIZING -> QR_PENDING -> LINKING -> CONNECTED.
    DISCONNECTED, UNLINKED and FAILED_LINKING are closing states.
    """

    INITIALIZING = "initializing"
    QR_PENDING = "qr_pending"
    LINKING = "linking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    UNLINKED = "unlinked"
    FAILED_LINKING = "failed_linking"

    @property
    def is_closing(self) -> bool:
        """Whether this status ends the current transport handle."""
        return self in (
            SessionStatus.DISCONNECTED,
            SessionStatus.UNLINKED,
            SessionStatus.FAILED_LINKING,
        )


class Topic(str, Enum):
    """Lifecycle event topics published on the event bus."""

    PAIRING_CODE = "pairing-code"
    CONNECTION_OPENED = "connection-opened"
    CONNECTION_CLOSED = "connection-closed"
    STATUS_UPDATE = "status-update"


class DisconnectReason(IntEnum):
    """Close reason codes reported by the messaging transport.

    Only LOGGED_OUT is terminal; every other code is treated as transient.
    """

    LOGGED_OUT = 401
    FORBIDDEN = 403
    CONNECTION_LOST = 408
    MULTIDEVICE_MISMATCH = 411
    CONNECTION_CLOSED = 428
    CONNECTION_REPLACED = 440
    BAD_SESSION = 500
    UNAVAILABLE_SERVICE = 503
    RESTART_REQUIRED = 515

    @classmethod
    def is_logout(cls, code: int | None) -> bool:
        """Check whether a close reason means the device was unlinked."""
        return code == cls.LOGGED_OUT
