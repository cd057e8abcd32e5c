"""Session management API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from linkbridge.core.config import validate_session_id
from linkbridge.core.errors import (
    ConfigPersistenceError,
    InvalidRequestError,
    TransportConstructionError,
)
from linkbridge.server.api.deps import get_controller, require_token
from linkbridge.server.schemas import (
    MessageResponse,
    SessionCreateRequest,
    SessionListResponse,
    SessionStatusResponse,
)
from linkbridge.sessions.controller import SessionController
from linkbridge.sessions.store import DEFAULT_DESCRIPTION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"], dependencies=[Depends(require_token)])


@router.get("", response_model=SessionListResponse)
def list_sessions(
    controller: SessionController = Depends(get_controller),
) -> SessionListResponse:
    """List all live sessions and their status."""
    return SessionListResponse(
        sessions=[SessionStatusResponse(**s) for s in controller.list_statuses()]
    )


@router.get("/{session_id}", response_model=SessionStatusResponse)
def get_session(
    session_id: str,
    controller: SessionController = Depends(get_controller),
) -> SessionStatusResponse:
    """Get the status of one session."""
    session = controller.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session not found: {session_id}",
        )
    return SessionStatusResponse(**session.to_status_dict())


@router.post(
    "/{session_id}",
    response_model=SessionStatusResponse,
    status_code=status.HTTP_201_CREATED,
)
async def open_session(
    session_id: str,
    request: SessionCreateRequest | None = None,
    controller: SessionController = Depends(get_controller),
) -> SessionStatusResponse:
    """Persist a session and start it (returns the existing one if live)."""
    description = (request.description if request else None) or DEFAULT_DESCRIPTION
    try:
        session = await controller.open_session(session_id, description)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except ConfigPersistenceError as e:
        logger.error("[%s] Could not persist session: %s", session_id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not persist session",
        ) from e
    except TransportConstructionError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e
    return SessionStatusResponse(**session.to_status_dict())


@router.post("/{session_id}/logout", response_model=MessageResponse)
async def logout_session(
    session_id: str,
    controller: SessionController = Depends(get_controller),
) -> MessageResponse:
    """Unlink a session from its device."""
    try:
        validate_session_id(session_id)
        found = await controller.logout(session_id)
    except InvalidRequestError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    except Exception as e:
        logger.exception("[%s] Error during logout", session_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="An error occurred while unlinking the session",
        ) from e

    if not found:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found or already disconnected",
        )
    return MessageResponse(success=True, message="Unlink request sent")
