"""Transport boundary: what the relay core needs from a connection."""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from typing import Any, Optional

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from .utils.serialization import encode_frame

logger = logging.getLogger(__name__)


class ConnectionState(enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    REGISTERED = "registered"
    REJECTED = "rejected"
    CLOSED = "closed"


class Connection:
    """
    A transport connection as seen by the core. Subclasses implement
    ``emit`` and ``close``; both must return without waiting on the network.
    """

    def __init__(self, connection_ref: Optional[str] = None, source_address: str = "unknown"):
        self.connection_ref = connection_ref or uuid.uuid4().hex
        self.source_address = source_address
        self.state = ConnectionState.CONNECTING

    def send(self, message: dict) -> None:
        self.emit("message", message)

    def emit(self, event: str, data: Any) -> None:
        raise NotImplementedError

    def close(self, graceful: bool = True, code: int = 1000, reason: str = "") -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.connection_ref} {self.source_address} {self.state.value}>"


class _Close:
    def __init__(self, code: int, reason: str):
        self.code = code
        self.reason = reason


class WebSocketConnection(Connection):
    """Connection backed by an accepted FastAPI WebSocket.

    Outbound frames go through a queue drained by a writer task, so ``emit``
    and ``close`` never block the caller.
    """

    def __init__(self, ws: WebSocket, connection_ref: Optional[str] = None):
        source = ws.client.host if ws.client else "unknown"
        super().__init__(connection_ref, source)
        self.ws = ws
        self._outbox: asyncio.Queue = asyncio.Queue()
        self._writer: Optional[asyncio.Task] = None
        self._closing = False

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop())

    def emit(self, event: str, data: Any) -> None:
        if self._closing:
            logger.debug("drop_after_close connection=%s event=%s", self.connection_ref, event)
            return
        self._outbox.put_nowait(encode_frame(event, data))

    def close(self, graceful: bool = True, code: int = 1000, reason: str = "") -> None:
        if self._closing:
            return
        self._closing = True
        self.state = ConnectionState.CLOSED
        if not graceful:
            while not self._outbox.empty():
                self._outbox.get_nowait()
        self._outbox.put_nowait(_Close(code, reason))

    async def _write_loop(self) -> None:
        while True:
            item = await self._outbox.get()
            if isinstance(item, _Close):
                try:
                    await self.ws.close(code=item.code, reason=item.reason)
                except Exception:
                    pass
                return
            if self.ws.application_state != WebSocketState.CONNECTED:
                continue
            try:
                await self.ws.send_text(item)
            except Exception as exc:
                logger.info("send_failed connection=%s err=%s", self.connection_ref, exc)
                self._closing = True
                return

    async def finish(self) -> None:
        """Stop the writer once the receive side has ended."""

        self._closing = True
        self.state = ConnectionState.CLOSED
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
