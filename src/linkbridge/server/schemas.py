"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field

# === Session schemas ===


class SessionStatusResponse(BaseModel):
    """Status of one session. Pairing codes are never exposed here."""

    session_id: str
    status: str
    qr_available: bool


class SessionListResponse(BaseModel):
    """All live sessions."""

    sessions: list[SessionStatusResponse]


class SessionCreateRequest(BaseModel):
    """Optional body for session creation."""

    description: str | None = None


class MessageResponse(BaseModel):
    """Generic success/failure response."""

    success: bool
    message: str


# === Delivery schemas ===


class SendDocumentRequest(BaseModel):
    """Request body for document delivery.

    Field names of the legacy ``/send-pdf`` endpoint (``sessionId``,
    ``to``, ``pdfBase64``, ``fileName``) are accepted as aliases. Required
    fields are validated by the endpoint so a missing one yields 400.
    """

    session_id: str | None = Field(
        default=None, validation_alias=AliasChoices("session_id", "sessionId")
    )
    recipient: str | None = Field(default=None, validation_alias=AliasChoices("recipient", "to"))
    document: str | None = Field(
        default=None, validation_alias=AliasChoices("document", "pdfBase64", "document_base64")
    )
    file_name: str | None = Field(
        default=None, validation_alias=AliasChoices("file_name", "fileName")
    )
    caption: str | None = None


class SendDocumentResponse(BaseModel):
    """Response for an accepted delivery."""

    success: bool
    message: str
    task_id: str


class TaskResponse(BaseModel):
    """Summary of a queued task (no payload)."""

    task_id: str
    session_id: str
    recipient: str
    file_name: str
    size: int
    has_caption: bool
    attempts: int
    last_error: str | None
    created_at: float


class QueueResponse(BaseModel):
    """Pending tasks and dead letters."""

    pending: list[TaskResponse]
    dead_letters: list[TaskResponse]


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    sessions: int
    queued: int
