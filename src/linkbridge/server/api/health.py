"""Health check API route."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from linkbridge.delivery.queue import DeliveryQueue
from linkbridge.server.api.deps import get_controller, get_queue
from linkbridge.server.schemas import HealthResponse
from linkbridge.sessions.controller import SessionController

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    controller: SessionController = Depends(get_controller),
    queue: DeliveryQueue = Depends(get_queue),
) -> HealthResponse:
    """Check server health."""
    return HealthResponse(status="ok", sessions=len(controller.registry), queued=len(queue))
