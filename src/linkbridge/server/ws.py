"""WebSocket relay of session lifecycle events.

This module provides:
- SessionRelay: forwards one session's lifecycle events to one WebSocket
- The ``/ws/session/{session_id}`` endpoint

Architecture:
    Transport ──► SessionController ──► EventBus ──► SessionRelay ──ws──► Browser
                                                    (one per socket)

Message format (server -> client):
    {"event": "qr", "data": "<pairing code>"}
    {"event": "status", "data": "initializing|qr_pending|linking|connected|..."}
    {"event": "error", "message": "..."}

Opening the socket for an unknown session persists and starts it, so a
browser can drive the whole pairing flow. Each socket owns one EventBus
subscription, released when the socket closes.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from linkbridge.core.config import validate_session_id
from linkbridge.core.errors import (
    ConfigPersistenceError,
    InvalidRequestError,
    TransportConstructionError,
)
from linkbridge.core.types import SessionStatus, Topic

if TYPE_CHECKING:
    from linkbridge.sessions.controller import SessionController
    from linkbridge.sessions.events import LifecycleEvent

logger = logging.getLogger(__name__)

ALREADY_CONNECTED = "already_connected"


def relay_message(event: LifecycleEvent) -> dict[str, Any]:
    """Convert a lifecycle event to the relay wire format."""
    if event.topic is Topic.PAIRING_CODE:
        return {"event": "qr", "data": event.payload.get("code")}
    if event.topic is Topic.CONNECTION_OPENED:
        return {"event": "status", "data": SessionStatus.CONNECTED.value}
    return {"event": "status", "data": event.status}


class SessionRelay:
    """Pushes one session's lifecycle events to one WebSocket."""

    def __init__(
        self,
        websocket: WebSocket,
        session_id: str,
        controller: SessionController,
    ) -> None:
        self._websocket = websocket
        self._session_id = session_id
        self._controller = controller
        self._outbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    async def send(self, message: dict[str, Any]) -> None:
        """Send a message if the socket is still open."""
        if self._websocket.client_state == WebSocketState.CONNECTED:
            await self._websocket.send_text(json.dumps(message))

    async def run(self) -> None:
        """Serve the socket until either side closes it."""
        subscription = self._controller.bus.subscribe(
            lambda event: self._outbox.put_nowait(relay_message(event)),
            session_id=self._session_id,
        )
        try:
            if not await self._bootstrap():
                return
            pump = asyncio.create_task(self._pump())
            listen = asyncio.create_task(self._listen())
            done, pending = await asyncio.wait(
                {pump, listen}, return_when=asyncio.FIRST_COMPLETED
            )
            for task in pending:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                    await task
            for task in done:
                with contextlib.suppress(WebSocketDisconnect):
                    task.result()
        finally:
            subscription.unsubscribe()
            logger.info("[%s] Relay listeners released", self._session_id)

    async def _bootstrap(self) -> bool:
        """Report the current state and start the session if needed.

        Returns:
            False if the socket was closed because of an error.
        """
        existing = self._controller.get(self._session_id)

        if existing is not None and existing.status is not SessionStatus.FAILED_LINKING:
            logger.info(
                "[%s] Existing session found with status %s",
                self._session_id,
                existing.status.value,
            )
            await self.send({"event": "status", "data": existing.status.value})
            if existing.status is SessionStatus.CONNECTED:
                await self.send({"event": "status", "data": ALREADY_CONNECTED})
            if existing.qr_available:
                await self.send({"event": "qr", "data": existing.pairing_code})
            return True

        logger.info("[%s] New session requested over WebSocket", self._session_id)
        await self.send({"event": "status", "data": SessionStatus.INITIALIZING.value})
        try:
            await self._controller.open_session(self._session_id)
        except ConfigPersistenceError as e:
            logger.error("[%s] Could not persist session: %s", self._session_id, e)
            await self._fail("Internal error while persisting the session.")
            return False
        except TransportConstructionError as e:
            logger.error("[%s] Could not start session: %s", self._session_id, e)
            await self._fail("Could not connect to the messaging transport.")
            return False
        return True

    async def _pump(self) -> None:
        while True:
            message = await self._outbox.get()
            await self.send(message)
            if message.get("data") == SessionStatus.UNLINKED.value:
                await self._websocket.close()
                return

    async def _listen(self) -> None:
        # Clients do not send anything meaningful; this only detects disconnects.
        while True:
            await self._websocket.receive_text()

    async def _fail(self, message: str) -> None:
        await self.send({"event": "error", "message": message})
        with contextlib.suppress(Exception):
            await self._websocket.close()


# WebSocket router
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/session/{session_id}")
async def websocket_session(websocket: WebSocket, session_id: str) -> None:
    """WebSocket endpoint relaying one session's lifecycle.

    Args:
        websocket: The WebSocket connection.
        session_id: Session to follow (created if unknown).
    """
    controller: SessionController = websocket.app.state.controller
    await websocket.accept()

    try:
        validate_session_id(session_id)
    except InvalidRequestError:
        await websocket.send_text(
            json.dumps({"event": "error", "message": "A valid session id is required."})
        )
        await websocket.close()
        return

    logger.info("[%s] Client connected via WebSocket", session_id)
    relay = SessionRelay(websocket, session_id, controller)
    try:
        await relay.run()
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("[%s] Error in session WebSocket: %s", session_id, e)
    logger.info("[%s] WebSocket closed", session_id)
