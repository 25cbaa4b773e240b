"""FastAPI application exposing the relay over WebSocket and HTTP."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .auth import token_from_websocket
from .config import RelaySettings
from .connection import WebSocketConnection
from .errors import RelayError
from .relay import SignalingRelay
from .schemas import PeerEntry, StatusResponse
from .utils.serialization import decode_frame

logger = logging.getLogger(__name__)


def create_app(settings: Optional[RelaySettings] = None, relay: Optional[SignalingRelay] = None) -> FastAPI:
    settings = settings or RelaySettings.from_env()
    relay = relay or SignalingRelay(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not relay.authenticator.enabled:
            logger.warning("RELAY_TOKEN is not set; any client may connect.")
        logger.info(
            "relay_ready capacity=%d rate_limit=%d/%ss",
            settings.max_connections,
            settings.rate_limit_max_attempts,
            settings.rate_limit_window_s,
        )
        yield

    app = FastAPI(title="signal-relay", version="0.1.0", lifespan=lifespan)
    app.state.relay = relay
    app.state.settings = settings
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------------------
    # WebSocket endpoint: /signal
    # ------------------------------------------------------------------------------
    @app.websocket("/signal")
    async def signal_socket(ws: WebSocket):
        conn = WebSocketConnection(ws)
        try:
            relay.on_connect(conn, token_from_websocket(ws))
        except RelayError as exc:
            # accept first so the close code and reason reach the client
            await ws.accept()
            await ws.close(code=exc.code, reason=exc.reason)
            return

        await ws.accept()
        conn.start()
        try:
            while True:
                message = await ws.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                size = len(raw.encode("utf-8")) if isinstance(raw, str) else len(raw)
                if size > settings.max_message_bytes:
                    logger.info("drop_oversize_message connection=%s size=%d", conn.connection_ref, size)
                    continue
                try:
                    event, data = decode_frame(raw)
                except ValueError as exc:
                    logger.info("decode_failed connection=%s err=%s", conn.connection_ref, exc)
                    continue
                relay.dispatch(conn, event, data)
        except WebSocketDisconnect:
            pass
        except Exception:
            logger.exception("handler_failed connection=%s", conn.connection_ref)
        finally:
            relay.on_disconnect(conn)
            await conn.finish()

    # ------------------------------------------------------------------------------
    # HTTP endpoints
    # ------------------------------------------------------------------------------
    @app.get("/connections", response_model=List[PeerEntry])
    async def connections() -> List[PeerEntry]:
        """Current registry snapshot."""

        return [PeerEntry(**entry) for entry in relay.connections()]

    @app.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        return StatusResponse(**relay.status())

    if settings.static_dir and os.path.isdir(settings.static_dir):
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


app = create_app()

