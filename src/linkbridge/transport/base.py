"""Transport abstractions.

The messaging transport owns the wire protocol, encryption, pairing-code
generation and the credential format. linkbridge only needs:

- TransportHandle: one live connection per session, able to send a
  document or a text message, unlink the device and close.
- TransportEvent: the lifecycle notifications a handle reports
  (pairing code, opened, closed with a reason, credentials changed).
- TransportProvider: a factory that builds a handle for a session id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class TransportEventKind(str, Enum):
    """Kinds of events emitted by a transport handle."""

    PAIRING_CODE = "pairing_code"
    OPENED = "opened"
    CLOSED = "closed"
    CREDENTIALS = "credentials"


@dataclass(frozen=True)
class TransportEvent:
    """A lifecycle notification from a transport handle.

    Attributes:
        kind: What happened.
        code: Pairing code (PAIRING_CODE only).
        reason: Close reason code (CLOSED only).
        credentials: Updated credential payload (CREDENTIALS only).
    """

    kind: TransportEventKind
    code: str | None = None
    reason: int | None = None
    credentials: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def pairing_code(cls, code: str) -> TransportEvent:
        return cls(TransportEventKind.PAIRING_CODE, code=code)

    @classmethod
    def opened(cls) -> TransportEvent:
        return cls(TransportEventKind.OPENED)

    @classmethod
    def closed(cls, reason: int | None) -> TransportEvent:
        return cls(TransportEventKind.CLOSED, reason=reason)

    @classmethod
    def credentials_changed(cls, credentials: dict[str, Any]) -> TransportEvent:
        return cls(TransportEventKind.CREDENTIALS, credentials=dict(credentials))


EventListener = Callable[[TransportEvent], Awaitable[None]]


class TransportHandle(ABC):
    """Live connection to the messaging transport for one session."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id

    @abstractmethod
    async def send_document(
        self,
        recipient: str,
        document: bytes,
        file_name: str,
        mimetype: str,
    ) -> None:
        """Send a document to an already-normalized recipient address."""

    @abstractmethod
    async def send_text(self, recipient: str, text: str) -> None:
        """Send a plain text message."""

    @abstractmethod
    async def logout(self) -> None:
        """Unlink the device; the handle then reports closed(LOGGED_OUT)."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection without unlinking."""


class TransportProvider(Protocol):
    """Factory for transport handles."""

    async def connect(
        self,
        session_id: str,
        credentials: dict[str, Any] | None,
        listener: EventListener,
    ) -> TransportHandle:
        """Open a handle for a session.

        Args:
            session_id: Session the handle belongs to.
            credentials: Previously saved credentials, or None for a new link.
            listener: Coroutine called for every event the handle reports.
                Events are only delivered after this call returns.

        Returns:
            The live handle.
        """
        ...
