"""Admission control: who may connect, and who gets a registry slot."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import CapacityEvicted, IdentityCollision, RateLimited
from .ratelimit import RateLimiter
from .registry import Peer, PeerRegistry

logger = logging.getLogger(__name__)


@dataclass
class Admission:
    """Outcome of a successful identity claim."""

    peer: Peer
    evicted: Optional[Peer] = None


class AdmissionController:
    """
    Two gates:
      - ``check_connection``: per-source rate limit, before any identity exists
      - ``admit``: capacity check, oldest-first eviction, then registration,
        all under the registry lock so concurrent claims at capacity evict
        exactly one peer each and never overshoot ``max_connections``
    """

    def __init__(self, registry: PeerRegistry, rate_limiter: RateLimiter, max_connections: int = 50):
        if max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        self.registry = registry
        self.rate_limiter = rate_limiter
        self.max_connections = max_connections

    def check_connection(self, source_address: str) -> None:
        if not self.rate_limiter.admit_attempt(source_address):
            logger.info("rate_limited source=%s", source_address)
            raise RateLimited(source_address)

    def admit(
        self,
        peer_id: str,
        connection: Any,
        metadata: Optional[Dict[str, Any]] = None,
        peer_type: Optional[str] = None,
    ) -> Admission:
        """Register *peer_id*, evicting the oldest peer first if the registry is full.

        Raises IdentityCollision after any eviction has already happened; the
        evicted peer is not restored.
        """

        with self.registry.lock:
            evicted = None
            if self.registry.size() >= self.max_connections:
                evicted = self._evict_oldest()
            try:
                peer = self.registry.try_register(peer_id, connection, metadata, peer_type)
            except IdentityCollision as exc:
                # the eviction stands; let the caller announce it
                exc.evicted = evicted
                raise
            return Admission(peer=peer, evicted=evicted)

    def _evict_oldest(self) -> Optional[Peer]:
        victim = self.registry.oldest()
        if victim is None:
            return None
        notice = CapacityEvicted(victim.peer_id)
        victim.connection.send(
            {
                "from": "server",
                "target": victim.peer_id,
                "payload": {"action": "close", "reason": notice.reason},
            }
        )
        victim.connection.close(graceful=True, code=notice.code, reason=notice.reason)
        self.registry.remove(victim.peer_id)
        logger.info("evicted peer=%s connected_at=%s reason=capacity", victim.peer_id, victim.connected_at)
        return victim
