"""Relay settings, read from the environment once at start-up."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class RelaySettings:
    host: str = "0.0.0.0"
    port: int = 3030
    token: Optional[str] = None
    max_connections: int = 50
    rate_limit_max_attempts: int = 10
    rate_limit_window_s: float = 60.0
    max_message_bytes: int = 512 * 1024
    join_broadcast_full_table: bool = False
    static_dir: str = "public"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "info"

    @staticmethod
    def from_env(environ: Optional[Mapping[str, str]] = None) -> "RelaySettings":
        env = os.environ if environ is None else environ
        origins = [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()]
        return RelaySettings(
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3030")),
            token=env.get("RELAY_TOKEN") or None,
            max_connections=int(env.get("MAX_CONNECTIONS", "50")),
            rate_limit_max_attempts=int(env.get("RATE_LIMIT_MAX_ATTEMPTS", "10")),
            rate_limit_window_s=float(env.get("RATE_LIMIT_WINDOW_S", "60")),
            max_message_bytes=int(env.get("MAX_MESSAGE_BYTES", str(512 * 1024))),
            join_broadcast_full_table=_env_bool(env.get("JOIN_BROADCAST_FULL_TABLE", "0")),
            static_dir=env.get("STATIC_DIR", "public"),
            cors_origins=origins or ["*"],
            log_level=env.get("LOG_LEVEL", "info").lower(),
        )
