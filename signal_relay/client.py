"""Asyncio client for the relay's `/signal` WebSocket."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode, urlparse

import websockets
from websockets.exceptions import ConnectionClosed

from .utils.serialization import decode_frame, encode_frame

logger = logging.getLogger(__name__)


class SignalingChannel:
    """
    One peer's channel to the relay.

    Set ``on_message`` (and optionally ``on_uniqueness_error``) before
    ``connect()``; either may be a plain function or a coroutine function.
    """

    def __init__(
        self,
        peer_id: str,
        url: str,
        token: Optional[str] = None,
        peer_type: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        proxy_url: Optional[str] = None,
    ):
        self.peer_id = peer_id
        self.url = url
        self.token = token
        self.peer_type = peer_type
        self.metadata = dict(metadata or {})
        self.proxy_url = proxy_url if proxy_url is not None else os.getenv("PROXY")
        self.on_message: Callable[[Dict[str, Any]], Any] = lambda message: None
        self.on_uniqueness_error: Callable[[str], Any] = self._log_uniqueness_error
        self._ws = None
        self._reader: Optional[asyncio.Task] = None

    def signal_url(self) -> str:
        parsed = urlparse(self.url)
        scheme = {"http": "ws", "https": "wss"}.get(parsed.scheme, parsed.scheme)
        path = parsed.path.rstrip("/")
        if not path.endswith("/signal"):
            path += "/signal"
        query = urlencode({"token": self.token}) if self.token else ""
        return parsed._replace(scheme=scheme, path=path, query=query).geturl()

    async def connect(self) -> None:
        url = self.signal_url()
        connect_kwargs = {}
        if self.proxy_url:
            import python_socks.asyncio  # lazy import

            parsed = urlparse(url)
            dest_port = parsed.port or (443 if parsed.scheme == "wss" else 80)
            proxy = python_socks.asyncio.Proxy.from_url(self.proxy_url)
            connect_kwargs["sock"] = await proxy.connect(dest_host=parsed.hostname, dest_port=dest_port)

        self._ws = await websockets.connect(url, max_size=None, **connect_kwargs)
        logger.info("Connected to %s as %s", self.url, self.peer_id)
        await self._emit(
            "ready",
            {"peerId": self.peer_id, "peerType": self.peer_type, "metadata": self.metadata},
        )
        self._reader = asyncio.create_task(self._read_loop())

    async def send(self, message: Any) -> None:
        """Relay *message* to every other peer."""

        await self._emit("message", {"from": self.peer_id, "target": "all", "message": message})

    async def send_to(self, target_peer_id: str, message: Any) -> None:
        await self._emit("messageOne", {"from": self.peer_id, "target": target_peer_id, "message": message})

    async def disconnect(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        if self._reader is not None:
            await self._reader
            self._reader = None

    async def wait_closed(self) -> None:
        if self._reader is not None:
            await self._reader

    async def __aenter__(self) -> "SignalingChannel":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.disconnect()

    async def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self._ws is None:
            raise RuntimeError("channel is not connected")
        await self._ws.send(encode_frame(event, data))

    async def _read_loop(self) -> None:
        try:
            async for raw in self._ws:
                try:
                    event, data = decode_frame(raw)
                except ValueError:
                    continue
                try:
                    if event == "message":
                        await _call(self.on_message, data)
                    elif event == "uniquenessError":
                        await _call(self.on_uniqueness_error, data.get("error", ""))
                except Exception:
                    logger.exception("callback_failed peer=%s type=%s", self.peer_id, event)
        except ConnectionClosed:
            pass
        finally:
            logger.info("Disconnected")

    def _log_uniqueness_error(self, error: str) -> None:
        logger.error("Error: %s", error)


async def _call(callback: Callable[[Any], Any], arg: Any) -> None:
    result = callback(arg)
    if inspect.isawaitable(result):
        await result
