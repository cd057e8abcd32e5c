"""Session lifecycle controller.

Drives the per-session state machine on top of transport handles:

    initializing -> qr_pending -> linking -> connected
                                     |
                                     +-> failed_linking   (no credentials after grace delay)
    any -> disconnected  (transient close: unregister, reconnect after backoff)
    any -> unlinked      (logout: credentials, persisted record and registry entry removed)

Deferred work (the link confirmation and the reconnect) runs as asyncio
tasks. Each deferred continuation re-checks the registry and the
session's generation before acting, so a close that arrives while a
check is waiting always wins.

Usage:
    controller = SessionController(provider, registry, bus, store, credentials)
    await controller.initialize()
    session = await controller.open_session("shop-1")
    ...
    await controller.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from functools import partial
from typing import TYPE_CHECKING, Any

from linkbridge.core.config import validate_session_id
from linkbridge.core.errors import (
    ConfigPersistenceError,
    InvalidRequestError,
    TransportConstructionError,
)
from linkbridge.core.types import DisconnectReason, SessionStatus, Topic
from linkbridge.sessions.registry import Session, SessionRegistry
from linkbridge.sessions.store import DEFAULT_DESCRIPTION
from linkbridge.transport.base import TransportEvent, TransportEventKind

if TYPE_CHECKING:
    from linkbridge.sessions.credentials import CredentialStore
    from linkbridge.sessions.events import EventBus
    from linkbridge.sessions.store import SessionConfigStore
    from linkbridge.transport.base import TransportProvider

logger = logging.getLogger(__name__)

DEFAULT_LINK_GRACE_DELAY = 1.0  # seconds
DEFAULT_RECONNECT_DELAY = 15.0  # seconds


class SessionController:
    """Owns session creation, transport events and reconnection policy."""

    def __init__(
        self,
        provider: TransportProvider,
        registry: SessionRegistry,
        bus: EventBus,
        store: SessionConfigStore,
        credentials: CredentialStore,
        link_grace_delay: float = DEFAULT_LINK_GRACE_DELAY,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ) -> None:
        """Initialize the controller.

        Args:
            provider: Factory for transport handles.
            registry: Registry of live sessions.
            bus: Bus lifecycle events are published on.
            store: Persisted list of known sessions.
            credentials: Per-session transport credentials.
            link_grace_delay: Seconds between "opened" and the credential check.
            reconnect_delay: Fixed backoff before reconnecting a dropped session.
        """
        self._provider = provider
        self._registry = registry
        self._bus = bus
        self._store = store
        self._credentials = credentials
        self._link_grace_delay = link_grace_delay
        self._reconnect_delay = reconnect_delay
        self._create_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._timers: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def registry(self) -> SessionRegistry:
        """Registry of live sessions."""
        return self._registry

    @property
    def bus(self) -> EventBus:
        """Bus lifecycle events are published on."""
        return self._bus

    @property
    def pending_timers(self) -> int:
        """Number of deferred checks and reconnects not yet run."""
        return len(self._timers)

    # === Queries ===

    def get(self, session_id: str) -> Session | None:
        """Get the live session for an id."""
        return self._registry.get(session_id)

    def list_statuses(self) -> list[dict[str, str | bool]]:
        """Status of every live session, without pairing codes."""
        return self._registry.statuses()

    # === Creation ===

    async def initialize(self) -> int:
        """Create a session for every persisted record.

        Called once at start-up. Failures are logged per session.

        Returns:
            Number of sessions started.
        """
        try:
            records = await self._store.list()
        except ConfigPersistenceError:
            logger.exception("Error initializing sessions from %s", self._store.path)
            return 0

        started = 0
        for record in records:
            if record.session_id in self._registry:
                continue
            try:
                await self.create_or_get(record.session_id)
                started += 1
            except InvalidRequestError:
                logger.error("Skipping configured session with invalid id %r", record.session_id)
            except TransportConstructionError as e:
                logger.error("[%s] Could not start session: %s", record.session_id, e)

        logger.info("Initialized %d of %d configured session(s)", started, len(records))
        return started

    async def create_or_get(self, session_id: str) -> Session:
        """Return the live session for an id, creating it if needed.

        A live session is returned unchanged, so repeated calls never build a
        second transport handle. A session whose handle is closing (for
        example one stuck in FAILED_LINKING) is not live: it is discarded
        and replaced.

        Raises:
            InvalidRequestError: If the session id is malformed.
            TransportConstructionError: If the provider cannot build a handle.
                Nothing is registered in that case.
        """
        validate_session_id(session_id)
        existing = self._registry.get(session_id)
        if existing is not None and not existing.status.is_closing:
            logger.debug("[%s] Session already active (%s)", session_id, existing.status.value)
            return existing

        async with self._creation_lock(session_id):
            existing = self._registry.get(session_id)
            if existing is not None:
                if not existing.status.is_closing:
                    return existing
                logger.info("[%s] Replacing %s session", session_id, existing.status.value)
                self._registry.remove(session_id, expected=existing)
                await self._close_transport(existing)
            return await self._create(session_id)

    async def _create(self, session_id: str) -> Session:
        session = Session(session_id=session_id)
        saved = self._credentials.load(session_id)
        try:
            handle = await self._provider.connect(
                session_id, saved, partial(self._dispatch, session)
            )
        except TransportConstructionError:
            raise
        except Exception as e:
            raise TransportConstructionError(session_id, str(e) or type(e).__name__) from e

        session.transport = handle
        self._registry.add(session)
        logger.info(
            "[%s] Session created (%s)",
            session_id,
            "restoring saved credentials" if saved else "awaiting pairing",
        )
        return session

    async def open_session(
        self,
        session_id: str,
        description: str = DEFAULT_DESCRIPTION,
    ) -> Session:
        """Persist a session id and start its session.

        Raises:
            InvalidRequestError: If the session id is malformed.
            ConfigPersistenceError: If the id cannot be persisted.
            TransportConstructionError: If the handle cannot be built.
        """
        validate_session_id(session_id)
        await self._store.add(session_id, description)
        return await self.create_or_get(session_id)

    async def logout(self, session_id: str) -> bool:
        """Ask the transport to unlink a session.

        The removal itself happens when the transport reports
        closed(LOGGED_OUT).

        Returns:
            False if there is no live session for the id.
        """
        session = self._registry.get(session_id)
        if session is None or session.transport is None:
            return False
        logger.info("[%s] Logout requested", session_id)
        await session.transport.logout()
        return True

    async def shutdown(self) -> None:
        """Cancel deferred work and close every transport handle."""
        self._closed = True
        timers = list(self._timers)
        for task in timers:
            task.cancel()
        await asyncio.gather(*timers, return_exceptions=True)

        for session in self._registry.snapshot().values():
            await self._close_transport(session)
        logger.info("Session controller stopped")

    # === Transport events ===

    async def _dispatch(self, session: Session, event: TransportEvent) -> None:
        """Route one transport event; errors stay local to the session."""
        if self._closed or not self._registry.is_current(session):
            logger.debug(
                "[%s] Ignoring %s from a stale handle", session.session_id, event.kind.value
            )
            return
        if session.status is SessionStatus.UNLINKED:
            return

        try:
            if event.kind is TransportEventKind.PAIRING_CODE:
                self._on_pairing_code(session, event.code or "")
            elif event.kind is TransportEventKind.OPENED:
                self._on_opened(session)
            elif event.kind is TransportEventKind.CLOSED:
                await self._on_closed(session, event.reason)
            elif event.kind is TransportEventKind.CREDENTIALS:
                self._credentials.save(session.session_id, event.credentials)
        except Exception:
            logger.exception(
                "[%s] Error handling %s event", session.session_id, event.kind.value
            )

    def _on_pairing_code(self, session: Session, code: str) -> None:
        session.set_pairing_code(code)
        logger.info("[%s] Pairing code available", session.session_id)
        self._bus.publish(Topic.PAIRING_CODE, session.session_id, code=code)

    def _on_opened(self, session: Session) -> None:
        if not session.transition(SessionStatus.LINKING):
            return
        logger.info("[%s] Connection opened, confirming link...", session.session_id)
        self._bus.publish(
            Topic.STATUS_UPDATE, session.session_id, status=SessionStatus.LINKING.value
        )
        self._schedule(
            self._link_grace_delay, self._confirm_link, session, session.generation
        )

    async def _confirm_link(self, session: Session, generation: int) -> None:
        if not self._registry.is_current(session) or session.generation != generation:
            logger.debug("[%s] Link check superseded", session.session_id)
            return

        if self._credentials.exists(session.session_id):
            if session.transition(SessionStatus.CONNECTED, expected=SessionStatus.LINKING):
                logger.info("[%s] Session linked and connected", session.session_id)
                self._bus.publish(Topic.CONNECTION_OPENED, session.session_id)
            return

        logger.error("[%s] Linking failed: no credentials persisted", session.session_id)
        if session.transition(SessionStatus.FAILED_LINKING, expected=SessionStatus.LINKING):
            self._bus.publish(
                Topic.CONNECTION_CLOSED,
                session.session_id,
                status=SessionStatus.FAILED_LINKING.value,
            )
            await self._close_transport(session)

    async def _on_closed(self, session: Session, reason: int | None) -> None:
        logged_out = DisconnectReason.is_logout(reason)
        if not logged_out and session.status is SessionStatus.FAILED_LINKING:
            logger.info(
                "[%s] Connection closed after failed link (reason %s)", session.session_id, reason
            )
            return

        if logged_out:
            await self._unlink(session, reason)
            return

        self._mark_closed(session, SessionStatus.DISCONNECTED, reason)
        self._registry.remove(session.session_id, expected=session)
        logger.info(
            "[%s] Scheduling reconnect in %.0f seconds", session.session_id, self._reconnect_delay
        )
        self._schedule(self._reconnect_delay, self._reconnect, session.session_id)
        await self._close_transport(session)

    def _mark_closed(self, session: Session, target: SessionStatus, reason: int | None) -> None:
        if session.transition(target):
            logger.info(
                "[%s] Connection closed. Status: %s. Reason: %s",
                session.session_id,
                target.value,
                reason,
            )
            self._bus.publish(Topic.CONNECTION_CLOSED, session.session_id, status=target.value)

    async def _unlink(self, session: Session, reason: int | None) -> None:
        """Remove credentials, the persisted record and the registry entry.

        Runs under the creation lock, so a concurrent create_or_get for the
        same id waits and then builds a fresh session from clean state.
        """
        session_id = session.session_id
        async with self._creation_lock(session_id):
            if not self._registry.is_current(session):
                logger.debug("[%s] Unlink superseded by a newer session", session_id)
                return
            self._mark_closed(session, SessionStatus.UNLINKED, reason)
            self._credentials.remove(session_id)
            try:
                await self._store.remove(session_id)
            except ConfigPersistenceError:
                logger.exception("[%s] Error removing unlinked session from config", session_id)
            self._registry.remove(session_id, expected=session)
            logger.info("[%s] Session unlinked and removed", session_id)
        await self._close_transport(session)

    async def _reconnect(self, session_id: str) -> None:
        if session_id in self._registry:
            logger.info("[%s] Session re-created during backoff, skipping reconnect", session_id)
            return
        logger.info("[%s] Reconnecting...", session_id)
        try:
            await self.create_or_get(session_id)
        except TransportConstructionError as e:
            logger.error("[%s] Reconnect attempt failed: %s", session_id, e)
            self._schedule(self._reconnect_delay, self._reconnect, session_id)

    # === Helpers ===

    @asynccontextmanager
    async def _creation_lock(self, session_id: str) -> AsyncIterator[None]:
        """Per-id lock, dropped once nobody holds or waits on it."""
        lock = self._create_locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._create_locks[session_id]

    def _schedule(
        self,
        delay: float,
        callback: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        task = asyncio.create_task(self._run_later(delay, callback, *args))
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    async def _run_later(
        self,
        delay: float,
        callback: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        await asyncio.sleep(delay)
        if self._closed:
            return
        try:
            await callback(*args)
        except Exception:
            logger.exception("Deferred %s failed", getattr(callback, "__name__", callback))

    async def _close_transport(self, session: Session) -> None:
        if session.transport is None:
            return
        try:
            await session.transport.close()
        except Exception as e:
            logger.warning("[%s] Error closing transport: %s", session.session_id, e)
