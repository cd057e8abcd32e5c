"""FastAPI dependencies for API routes."""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from linkbridge.core.config import Settings
from linkbridge.delivery.queue import DeliveryQueue
from linkbridge.sessions.controller import SessionController

# Security scheme
security = HTTPBearer(auto_error=False)


def get_controller(request: Request) -> SessionController:
    """Get session controller from app state."""
    controller: SessionController = request.app.state.controller
    return controller


def get_queue(request: Request) -> DeliveryQueue:
    """Get delivery queue from app state."""
    queue: DeliveryQueue = request.app.state.queue
    return queue


def get_settings(request: Request) -> Settings:
    """Get settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def require_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    """Validate the static bearer token."""
    expected = get_settings(request).api_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="API token not configured",
        )
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid authentication token",
        )
