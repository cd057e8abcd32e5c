"""WebSocket bridge to an external messaging gateway.

The gateway process owns the actual messaging protocol. linkbridge opens
one WebSocket per session to ``{bridge_url}/sessions/{session_id}`` and
exchanges JSON frames:

    linkbridge -> gateway
        {"type": "hello", "session": "...", "credentials": {...} | null}
        {"type": "send", "id": 1, "to": "...", "document": "<b64>",
         "fileName": "...", "mimetype": "..."}
        {"type": "send", "id": 2, "to": "...", "text": "..."}
        {"type": "logout"}

    gateway -> linkbridge
        {"type": "qr", "code": "..."}
        {"type": "open"}
        {"type": "close", "reason": 401}
        {"type": "creds", "credentials": {...}}
        {"type": "ack", "id": 1}
        {"type": "error", "id": 1, "message": "..."}

Losing the socket without a ``close`` frame is reported to the listener as
closed(CONNECTION_LOST).
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import itertools
import json
import logging
from typing import TYPE_CHECKING, Any

import websockets
from websockets.exceptions import WebSocketException

from linkbridge.core.errors import TransportConstructionError
from linkbridge.core.types import DisconnectReason
from linkbridge.transport.base import EventListener, TransportEvent, TransportHandle

if TYPE_CHECKING:
    from websockets.asyncio.client import ClientConnection

logger = logging.getLogger(__name__)


class BridgeTransport(TransportHandle):
    """Transport handle backed by a gateway WebSocket."""

    def __init__(
        self,
        session_id: str,
        ws: ClientConnection,
        listener: EventListener,
        request_timeout: float = 30.0,
    ) -> None:
        super().__init__(session_id)
        self._ws = ws
        self._listener = listener
        self._request_timeout = request_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[None]] = {}
        self._reader: asyncio.Task[None] | None = None
        self._close_reported = False
        self._closing = False

    def start(self) -> None:
        """Start reading gateway frames in the background."""
        if self._reader is None:
            self._reader = asyncio.create_task(
                self._read_loop(), name=f"bridge-reader-{self.session_id}"
            )

    async def send_document(
        self,
        recipient: str,
        document: bytes,
        file_name: str,
        mimetype: str,
    ) -> None:
        await self._request({
            "type": "send",
            "to": recipient,
            "document": base64.b64encode(document).decode("ascii"),
            "fileName": file_name,
            "mimetype": mimetype,
        })

    async def send_text(self, recipient: str, text: str) -> None:
        await self._request({"type": "send", "to": recipient, "text": text})

    async def logout(self) -> None:
        await self._ws.send(json.dumps({"type": "logout"}))

    async def close(self) -> None:
        self._closing = True
        with contextlib.suppress(WebSocketException):
            await self._ws.close()

    async def _request(self, payload: dict[str, Any]) -> None:
        """Send a frame and wait for the gateway to acknowledge it.

        Raises:
            ConnectionError: If the socket closes before the acknowledgement.
            RuntimeError: If the gateway reports an error.
            TimeoutError: If no acknowledgement arrives in time.
        """
        request_id = next(self._ids)
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send(json.dumps({**payload, "id": request_id}))
            await asyncio.wait_for(future, timeout=self._request_timeout)
        finally:
            self._pending.pop(request_id, None)

    async def _read_loop(self) -> None:
        try:
            async for message in self._ws:
                if isinstance(message, bytes):
                    message = message.decode("utf-8")
                await self._handle_frame(message)
        except WebSocketException as e:
            logger.debug("[%s] Bridge socket error: %s", self.session_id, e)
        finally:
            for future in self._pending.values():
                if not future.done():
                    future.set_exception(ConnectionError("Bridge connection closed"))
            if not self._closing and not self._close_reported:
                self._close_reported = True
                logger.warning("[%s] Bridge connection lost", self.session_id)
                await self._emit(TransportEvent.closed(DisconnectReason.CONNECTION_LOST))

    async def _handle_frame(self, message: str) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("[%s] Invalid bridge frame: %s", self.session_id, message[:100])
            return

        frame_type = data.get("type")

        if frame_type == "qr":
            await self._emit(TransportEvent.pairing_code(str(data.get("code", ""))))
        elif frame_type == "open":
            await self._emit(TransportEvent.opened())
        elif frame_type == "close":
            self._close_reported = True
            reason = data.get("reason")
            await self._emit(TransportEvent.closed(int(reason) if reason is not None else None))
        elif frame_type == "creds":
            await self._emit(TransportEvent.credentials_changed(data.get("credentials") or {}))
        elif frame_type in ("ack", "error"):
            future = self._pending.get(data.get("id"))
            if future is None or future.done():
                if frame_type == "error":
                    logger.warning("[%s] Bridge error: %s", self.session_id, data.get("message"))
                return
            if frame_type == "ack":
                future.set_result(None)
            else:
                future.set_exception(RuntimeError(data.get("message") or "send failed"))
        else:
            logger.debug("[%s] Ignoring bridge frame type %r", self.session_id, frame_type)

    async def _emit(self, event: TransportEvent) -> None:
        try:
            await self._listener(event)
        except Exception:
            logger.exception("[%s] Listener failed for %s", self.session_id, event.kind.value)


class BridgeTransportProvider:
    """Builds BridgeTransport handles against one gateway.

    Attributes:
        url: Base WebSocket URL of the gateway.
        open_timeout: Seconds allowed for the WebSocket handshake.
        request_timeout: Seconds to wait for a send acknowledgement.
    """

    def __init__(
        self,
        url: str,
        open_timeout: float = 10.0,
        request_timeout: float = 30.0,
    ) -> None:
        self.url = url.rstrip("/")
        self.open_timeout = open_timeout
        self.request_timeout = request_timeout

    def session_url(self, session_id: str) -> str:
        """Get the gateway URL for a session."""
        return f"{self.url}/sessions/{session_id}"

    async def connect(
        self,
        session_id: str,
        credentials: dict[str, Any] | None,
        listener: EventListener,
    ) -> BridgeTransport:
        try:
            ws = await websockets.connect(
                self.session_url(session_id),
                open_timeout=self.open_timeout,
                close_timeout=5,
                max_size=None,
            )
        except (OSError, TimeoutError, WebSocketException) as e:
            raise TransportConstructionError(session_id, f"Cannot reach gateway: {e}") from e

        try:
            await ws.send(json.dumps({
                "type": "hello",
                "session": session_id,
                "credentials": credentials,
            }))
        except WebSocketException as e:
            with contextlib.suppress(WebSocketException):
                await ws.close()
            raise TransportConstructionError(session_id, f"Gateway handshake failed: {e}") from e

        handle = BridgeTransport(session_id, ws, listener, self.request_timeout)
        handle.start()
        logger.info("[%s] Connected to gateway %s", session_id, self.url)
        return handle
