"""Pydantic models for inbound control frames and HTTP responses."""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class ReadyFrame(BaseModel):
    peerId: str = Field(min_length=1, max_length=128)
    peerType: str | None = Field(default=None, max_length=64)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class Envelope(BaseModel):
    """Only ``target`` is structural; everything else passes through untouched."""

    model_config = ConfigDict(extra="allow")

    target: str = Field(min_length=1)


class PeerEntry(BaseModel):
    peerId: str
    peerType: str | None = None
    socketId: str
    connectedAt: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class StatusResponse(BaseModel):
    peers: int
    capacity: int
    rateLimitedSources: int
