"""Delivery task types.

A DeliveryTask only refers to its session by id. It carries no session
state and stays valid while the session is absent, reconnecting or not
yet created.
"""

from __future__ import annotations

import base64
import binascii
import mimetypes
import time
import uuid
from dataclasses import dataclass, field

from linkbridge.core.errors import InvalidRequestError

DEFAULT_FILE_NAME = "document.pdf"
DEFAULT_MIMETYPE = "application/pdf"


@dataclass(eq=False)
class DeliveryTask:
    """A queued document (and optional caption) to send through a session.

    Attributes:
        session_id: Session to send through (weak reference).
        recipient: Recipient as supplied by the caller.
        document: Document bytes.
        file_name: File name shown to the recipient.
        caption: Optional text sent as a separate message after the document.
        task_id: Unique id of the task.
        attempts: Number of failed send attempts.
        last_error: Message of the last send failure.
        created_at: Enqueue time (Unix timestamp).
    """

    session_id: str
    recipient: str
    document: bytes
    file_name: str = DEFAULT_FILE_NAME
    caption: str | None = None
    task_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    attempts: int = 0
    last_error: str | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def mimetype(self) -> str:
        guessed, _ = mimetypes.guess_type(self.file_name)
        return guessed or DEFAULT_MIMETYPE

    @property
    def has_caption(self) -> bool:
        return bool(self.caption and self.caption.strip())

    @classmethod
    def from_request(
        cls,
        session_id: str | None,
        recipient: str | None,
        document_b64: str | None,
        file_name: str | None = None,
        caption: str | None = None,
    ) -> DeliveryTask:
        """Build a task from API input.

        Raises:
            InvalidRequestError: If a required field is missing or the
                payload is not valid base64.
        """
        if not session_id or not recipient or not document_b64:
            raise InvalidRequestError(
                "Missing required parameters: session_id, recipient, document."
            )
        try:
            document = base64.b64decode(document_b64, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidRequestError(f"Document is not valid base64: {e}") from e

        return cls(
            session_id=session_id,
            recipient=recipient,
            document=document,
            file_name=file_name or DEFAULT_FILE_NAME,
            caption=caption,
        )

    def to_dict(self) -> dict[str, str | int | float | None]:
        """Summary without the document bytes."""
        return {
            "task_id": self.task_id,
            "session_id": self.session_id,
            "recipient": self.recipient,
            "file_name": self.file_name,
            "size": len(self.document),
            "has_caption": self.has_caption,
            "attempts": self.attempts,
            "last_error": self.last_error,
            "created_at": self.created_at,
        }


@dataclass
class DrainResult:
    """Outcome of one queue drain.

    Attributes:
        sent: Tasks delivered and removed.
        waiting: Tasks skipped because their session is absent or not connected.
        failed: Tasks whose send failed and stay queued.
        dead_lettered: Tasks moved to the dead-letter list.
    """

    sent: int = 0
    waiting: int = 0
    failed: int = 0
    dead_lettered: int = 0


def normalize_recipient(recipient: str, suffix: str) -> str:
    """Convert a recipient to the transport's address form.

    Whitespace and a leading ``+`` are dropped and ``suffix`` is appended,
    unless the recipient already carries a domain.
    """
    recipient = recipient.strip()
    if "@" in recipient:
        return recipient
    return f"{recipient.lstrip('+').replace(' ', '')}{suffix}"
