"""Error taxonomy for the signaling relay.

Every error here is local to a single connection: it terminates (or is
absorbed for) the offending connection only and never the relay itself.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class carrying a human-readable reason and a WebSocket close code."""

    code = 4000
    reason = "Relay error"

    def __init__(self, reason: str | None = None):
        if reason is not None:
            self.reason = reason
        super().__init__(self.reason)


class AuthenticationFailed(RelayError):
    code = 4401
    reason = "Authentication error"


class RateLimited(RelayError):
    code = 4429
    reason = "Too many connection attempts"

    def __init__(self, source_address: str, reason: str | None = None):
        self.source_address = source_address
        super().__init__(reason)


class IdentityCollision(RelayError):
    code = 4409

    def __init__(self, peer_id: str):
        self.peer_id = peer_id
        # set by admission when a capacity eviction preceded the collision
        self.evicted = None
        super().__init__(
            f"{peer_id} is already connected to the signalling server. "
            "Please change your peer ID and try again."
        )


class CapacityEvicted(RelayError):
    """Close notice sent to a peer evicted to make room."""

    code = 4503
    reason = "capacity"

    def __init__(self, peer_id: str):
        self.peer_id = peer_id
        super().__init__()


class TargetNotFound(RelayError):
    reason = "Target not found"

    def __init__(self, peer_id: str):
        self.peer_id = peer_id
        super().__init__(f"Target {peer_id} not found")


__all__ = [
    "AuthenticationFailed",
    "CapacityEvicted",
    "IdentityCollision",
    "RateLimited",
    "RelayError",
    "TargetNotFound",
]
