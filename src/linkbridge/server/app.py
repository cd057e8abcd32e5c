"""FastAPI application for the linkbridge server.

This module creates and configures the FastAPI application with:
- REST API for sessions and document delivery
- WebSocket relay of session lifecycle events
- Periodic delivery queue drain

Usage:
    uvicorn linkbridge.server.app:app_factory --factory --host 0.0.0.0 --port 3000
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI

from linkbridge import __version__
from linkbridge.core.config import Settings
from linkbridge.delivery.queue import DeliveryQueue
from linkbridge.server.api.router import router as api_router
from linkbridge.server.scheduler import DeliveryScheduler
from linkbridge.server.ws import router as ws_router
from linkbridge.sessions.controller import SessionController
from linkbridge.sessions.credentials import CredentialStore
from linkbridge.sessions.events import EventBus
from linkbridge.sessions.registry import SessionRegistry
from linkbridge.sessions.store import SessionConfigStore
from linkbridge.transport.base import TransportProvider
from linkbridge.transport.bridge import BridgeTransportProvider

logger = logging.getLogger(__name__)


def setup_logging(log_path: Path, level: int = logging.INFO) -> None:
    """Configure logging to output to both file and stdout.

    Args:
        log_path: Path to the log file.
        level: Level of the ``linkbridge`` logger.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    # Root logger for linkbridge
    root_logger = logging.getLogger("linkbridge")
    root_logger.setLevel(level)

    # Stdout handler
    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    # File handler
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    # Also capture uvicorn logs to file
    for uvicorn_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(uvicorn_name)
        uvicorn_logger.addHandler(file_handler)


@dataclass
class Services:
    """The wired-up core objects behind one application."""

    settings: Settings
    registry: SessionRegistry
    bus: EventBus
    store: SessionConfigStore
    credentials: CredentialStore
    controller: SessionController
    queue: DeliveryQueue


def build_services(
    settings: Settings,
    provider: TransportProvider | None = None,
) -> Services:
    """Wire the registry, controller and queue from settings.

    Args:
        settings: Runtime settings.
        provider: Transport provider (defaults to the gateway bridge).

    Returns:
        The wired services.
    """
    registry = SessionRegistry()
    bus = EventBus()
    store = SessionConfigStore(settings.config_path)
    credentials = CredentialStore(settings.sessions_dir)
    controller = SessionController(
        provider=provider or BridgeTransportProvider(settings.bridge_url),
        registry=registry,
        bus=bus,
        store=store,
        credentials=credentials,
        link_grace_delay=settings.link_grace_delay,
        reconnect_delay=settings.reconnect_delay,
    )
    queue = DeliveryQueue(
        registry,
        caption_delay=settings.caption_delay,
        recipient_suffix=settings.recipient_suffix,
        max_attempts=settings.max_attempts,
    )
    return Services(settings, registry, bus, store, credentials, controller, queue)


def create_app(services: Services) -> FastAPI:
    """Create FastAPI application around already-wired services.

    This is primarily used for testing with a fake transport provider.

    Args:
        services: Wired core objects.

    Returns:
        Configured FastAPI application.
    """
    settings = services.settings
    scheduler = DeliveryScheduler(services.queue, interval=settings.drain_interval)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        # Startup
        logger.info("=" * 60)
        logger.info("LinkBridge Server Starting")
        logger.info("=" * 60)
        logger.info("  Sessions config: %s", settings.config_path)
        logger.info("  Credentials:     %s", settings.sessions_dir)
        logger.info("  Gateway:         %s", settings.bridge_url)
        logger.info("  Drain interval:  %.1fs", settings.drain_interval)
        if not settings.api_token:
            logger.warning("  API token not set: REST API is disabled")
        logger.info("=" * 60)

        await services.controller.initialize()
        scheduler.start()

        yield

        # Shutdown
        scheduler.stop()
        await services.controller.shutdown()
        logger.info("LinkBridge Server shutting down")

    application = FastAPI(
        title="LinkBridge Server",
        description="Linked-device session relay and document delivery queue",
        version=__version__,
        lifespan=lifespan,
    )

    application.state.settings = settings
    application.state.controller = services.controller
    application.state.queue = services.queue
    application.state.scheduler = scheduler

    application.include_router(api_router)
    application.include_router(ws_router)

    return application


def app_factory() -> FastAPI:
    """Factory function for uvicorn --factory mode."""
    settings = Settings.from_env()
    setup_logging(settings.log_path)
    return create_app(build_services(settings))
