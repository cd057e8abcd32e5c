"""Shared fixtures: wired core objects around an in-memory transport provider."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio

from linkbridge.sessions.controller import SessionController
from linkbridge.sessions.credentials import CredentialStore
from linkbridge.sessions.events import EventBus, LifecycleEvent
from linkbridge.sessions.registry import SessionRegistry
from linkbridge.sessions.store import SessionConfigStore
from tests.fakes import FakeProvider


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def registry() -> SessionRegistry:
    return SessionRegistry()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def events(bus: EventBus) -> list[LifecycleEvent]:
    """Every event published on the bus, in order."""
    received: list[LifecycleEvent] = []
    bus.subscribe(received.append)
    return received


@pytest.fixture
def store(tmp_path: Path) -> SessionConfigStore:
    return SessionConfigStore(tmp_path / "sessions.config.json")


@pytest.fixture
def credentials(tmp_path: Path) -> CredentialStore:
    return CredentialStore(tmp_path / "sessions")


@pytest_asyncio.fixture
async def make_controller(
    provider: FakeProvider,
    registry: SessionRegistry,
    bus: EventBus,
    store: SessionConfigStore,
    credentials: CredentialStore,
) -> AsyncGenerator[Callable[..., SessionController], None]:
    """Factory for controllers with short delays; all are shut down afterwards."""
    created: list[SessionController] = []

    def factory(link_grace_delay: float = 0.01, reconnect_delay: float = 0.05) -> SessionController:
        controller = SessionController(
            provider=provider,
            registry=registry,
            bus=bus,
            store=store,
            credentials=credentials,
            link_grace_delay=link_grace_delay,
            reconnect_delay=reconnect_delay,
        )
        created.append(controller)
        return controller

    yield factory

    for controller in created:
        await controller.shutdown()


@pytest_asyncio.fixture
async def controller(
    make_controller: Callable[..., SessionController],
) -> SessionController:
    return make_controller()
