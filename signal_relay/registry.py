"""Authoritative table of currently registered peers."""

from __future__ import annotations

import itertools
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import IdentityCollision


@dataclass
class Peer:
    """One active registration. Never mutated after creation."""

    peer_id: str
    connection: Any
    connected_at: float
    peer_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    seq: int = 0

    @property
    def connection_ref(self) -> str:
        return self.connection.connection_ref

    def to_entry(self) -> Dict[str, Any]:
        """Public representation carried in lifecycle payloads and `/connections`."""

        return {
            "peerId": self.peer_id,
            "peerType": self.peer_type,
            "socketId": self.connection_ref,
            "connectedAt": self.connected_at,
            "metadata": dict(self.metadata),
        }


class PeerRegistry:
    """
    Maps peer id -> Peer with two invariants:
      - at most one Peer per peer id
      - at most one Peer per connection
    All mutation happens under ``lock``; callers that need a larger critical
    section (admission) may hold it themselves since it is re-entrant.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._peers: Dict[str, Peer] = {}
        self._by_connection: Dict[str, str] = {}
        self._seq = itertools.count()
        self.lock = threading.RLock()

    def try_register(
        self,
        peer_id: str,
        connection: Any,
        metadata: Optional[Dict[str, Any]] = None,
        peer_type: Optional[str] = None,
    ) -> Peer:
        """Insert a new Peer or raise IdentityCollision, leaving the holder untouched."""

        with self.lock:
            if peer_id in self._peers:
                raise IdentityCollision(peer_id)
            if connection.connection_ref in self._by_connection:
                raise ValueError(f"connection {connection.connection_ref} already owns a peer")
            peer = Peer(
                peer_id=peer_id,
                connection=connection,
                connected_at=self._clock(),
                peer_type=peer_type,
                metadata=dict(metadata or {}),
                seq=next(self._seq),
            )
            self._peers[peer_id] = peer
            self._by_connection[connection.connection_ref] = peer_id
            return peer

    def remove(self, peer_id: str) -> Optional[Peer]:
        with self.lock:
            peer = self._peers.pop(peer_id, None)
            if peer is not None:
                self._by_connection.pop(peer.connection_ref, None)
            return peer

    def remove_by_connection(self, connection_ref: str) -> Optional[Peer]:
        with self.lock:
            peer_id = self._by_connection.get(connection_ref)
            if peer_id is None:
                return None
            return self.remove(peer_id)

    def get(self, peer_id: str) -> Optional[Peer]:
        with self.lock:
            return self._peers.get(peer_id)

    def get_by_connection(self, connection_ref: str) -> Optional[Peer]:
        with self.lock:
            peer_id = self._by_connection.get(connection_ref)
            return self._peers.get(peer_id) if peer_id is not None else None

    def snapshot(self) -> List[Peer]:
        with self.lock:
            return list(self._peers.values())

    def size(self) -> int:
        with self.lock:
            return len(self._peers)

    def oldest(self) -> Optional[Peer]:
        # Equal timestamps fall back to registration order.
        with self.lock:
            if not self._peers:
                return None
            return min(self._peers.values(), key=lambda p: (p.connected_at, p.seq))

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, peer_id: object) -> bool:
        with self.lock:
            return peer_id in self._peers
