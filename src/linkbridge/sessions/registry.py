"""In-memory registry of live sessions.

The registry is the single source of truth for "is this session usable
right now". It is only reachable through narrow accessors; the underlying
mapping is never handed out.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from linkbridge.core.types import SessionStatus

if TYPE_CHECKING:
    from linkbridge.transport.base import TransportHandle

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Session:
    """A linked-device session and its live transport handle.

    Attributes:
        session_id: Caller-supplied unique id.
        status: Current lifecycle status.
        pairing_code: Code to show while waiting for a link (QR_PENDING only).
        transport: The session's only live transport handle.
        generation: Incremented on every status change; deferred checks compare
            it to detect that the state moved on while they were waiting.
        created_at: When this session object was created.
    """

    session_id: str
    status: SessionStatus = SessionStatus.INITIALIZING
    pairing_code: str | None = None
    transport: TransportHandle | None = None
    generation: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def qr_available(self) -> bool:
        return self.status is SessionStatus.QR_PENDING and self.pairing_code is not None

    @property
    def is_connected(self) -> bool:
        return self.status is SessionStatus.CONNECTED

    def transition(
        self,
        status: SessionStatus,
        expected: SessionStatus | None = None,
    ) -> bool:
        """Compare-and-set the status.

        Args:
            status: New status.
            expected: If given, only transition from this status.

        Returns:
            True if the status changed.
        """
        if expected is not None and self.status is not expected:
            return False
        if self.status is status:
            return False
        self.status = status
        self.generation += 1
        if status is not SessionStatus.QR_PENDING:
            self.pairing_code = None
        return True

    def set_pairing_code(self, code: str) -> None:
        """Enter QR_PENDING with a (possibly refreshed) pairing code."""
        self.transition(SessionStatus.QR_PENDING)
        self.pairing_code = code

    def to_status_dict(self) -> dict[str, str | bool]:
        """Public view of the session; never includes the pairing code."""
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "qr_available": self.qr_available,
        }


class SessionRegistry:
    """Mapping from session id to its live Session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.RLock()

    def get(self, session_id: str) -> Session | None:
        """Look up the live session for an id."""
        with self._lock:
            return self._sessions.get(session_id)

    def add(self, session: Session) -> None:
        """Register a session.

        Raises:
            ValueError: If a session is already registered for the id.
        """
        with self._lock:
            if session.session_id in self._sessions:
                raise ValueError(f"Session already registered: {session.session_id}")
            self._sessions[session.session_id] = session
        logger.debug("[%s] Registered", session.session_id)

    def remove(self, session_id: str, expected: Session | None = None) -> Session | None:
        """Unregister a session.

        Args:
            session_id: Id to remove.
            expected: Only remove if the registered session is this instance.

        Returns:
            The removed session, or None if nothing was removed.
        """
        with self._lock:
            current = self._sessions.get(session_id)
            if current is None or (expected is not None and current is not expected):
                return None
            del self._sessions[session_id]
        logger.debug("[%s] Unregistered", session_id)
        return current

    def is_current(self, session: Session) -> bool:
        """Check whether a session object is still the registered one."""
        with self._lock:
            return self._sessions.get(session.session_id) is session

    def snapshot(self) -> dict[str, Session]:
        """Copy of the current mapping, taken atomically."""
        with self._lock:
            return dict(self._sessions)

    def statuses(self) -> list[dict[str, str | bool]]:
        """Status of every registered session."""
        return [s.to_status_dict() for s in self.snapshot().values()]

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
