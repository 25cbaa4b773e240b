"""Fan-out of relayed messages over the current registry state."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .errors import TargetNotFound
from .registry import Peer, PeerRegistry

logger = logging.getLogger(__name__)

LEAVE_MESSAGE = "Peer has left the signaling server"


class MessageRouter:
    """Delivers envelopes unmodified; payloads are never inspected."""

    def __init__(self, registry: PeerRegistry, join_broadcast_full_table: bool = False):
        self.registry = registry
        self.join_broadcast_full_table = join_broadcast_full_table

    def broadcast_except(self, sender_ref: Optional[str], message: Dict[str, Any]) -> int:
        """Send *message* to every registered connection but the sender's."""

        delivered = 0
        for peer in self.registry.snapshot():
            if peer.connection_ref == sender_ref:
                continue
            peer.connection.send(message)
            delivered += 1
        return delivered

    def resolve(self, peer_id: str) -> Peer:
        peer = self.registry.get(peer_id)
        if peer is None:
            raise TargetNotFound(peer_id)
        return peer

    def deliver_to(self, target_peer_id: str, message: Dict[str, Any]) -> bool:
        try:
            peer = self.resolve(target_peer_id)
        except TargetNotFound as exc:
            logger.info("%s", exc.reason)
            return False
        peer.connection.send(message)
        return True

    def announce_join(self, new_peer: Peer) -> None:
        # The newcomer answers (impolite); everyone already present yields.
        table = self.registry.snapshot()
        others = [p.to_entry() for p in table if p.peer_id != new_peer.peer_id]
        new_peer.connection.send(
            {
                "from": "all",
                "target": new_peer.peer_id,
                "payload": {"action": "open", "connections": others, "bePolite": False},
            }
        )
        if self.join_broadcast_full_table:
            connections = [p.to_entry() for p in table]
        else:
            connections = [new_peer.to_entry()]
        self.broadcast_except(
            new_peer.connection_ref,
            {
                "from": new_peer.peer_id,
                "target": "all",
                "payload": {"action": "open", "connections": connections, "bePolite": True},
            },
        )

    def announce_leave(self, departed: Peer) -> None:
        self.broadcast_except(
            departed.connection_ref,
            {
                "from": departed.peer_id,
                "target": "all",
                "payload": {"action": "close", "message": LEAVE_MESSAGE},
            },
        )
