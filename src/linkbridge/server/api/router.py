"""Main API router that includes all sub-routers."""

from __future__ import annotations

from fastapi import APIRouter

from linkbridge.server.api import delivery, health, sessions

router = APIRouter()

# Include all API routers
router.include_router(health.router)
router.include_router(sessions.router)
router.include_router(delivery.router)
