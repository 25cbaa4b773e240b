"""Handshake-time token check. The core only ever sees pass or fail."""

from __future__ import annotations

import hmac
from typing import Optional

from fastapi import WebSocket

from .errors import AuthenticationFailed


def token_from_websocket(ws: WebSocket) -> Optional[str]:
    token = ws.query_params.get("token")
    if token:
        return token
    header = ws.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


class TokenAuthenticator:
    def __init__(self, token: Optional[str] = None):
        self._token = token

    @property
    def enabled(self) -> bool:
        return bool(self._token)

    def authenticate(self, presented: Optional[str]) -> None:
        if not self.enabled:
            return
        if presented is None or not hmac.compare_digest(presented.encode("utf-8"), self._token.encode("utf-8")):
            raise AuthenticationFailed()
