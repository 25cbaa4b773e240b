"""Event façade: transport events in, admission/registry/router decisions out."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from .admission import AdmissionController
from .auth import TokenAuthenticator
from .config import RelaySettings
from .connection import Connection, ConnectionState
from .errors import IdentityCollision, RelayError
from .ratelimit import RateLimiter
from .registry import Peer, PeerRegistry
from .router import MessageRouter
from .schemas import Envelope, ReadyFrame

logger = logging.getLogger(__name__)

BROADCAST = "all"


class SignalingRelay:
    """
    Owns one registry and one rate limiter and wires them into the
    admission controller and router. One instance per server.
    """

    def __init__(
        self,
        settings: Optional[RelaySettings] = None,
        clock: Callable[[], float] = time.monotonic,
        authenticator: Optional[TokenAuthenticator] = None,
    ):
        self.settings = settings or RelaySettings()
        self.registry = PeerRegistry(clock=clock)
        self.rate_limiter = RateLimiter(
            max_attempts=self.settings.rate_limit_max_attempts,
            window_s=self.settings.rate_limit_window_s,
            clock=clock,
        )
        self.admission = AdmissionController(
            self.registry, self.rate_limiter, max_connections=self.settings.max_connections
        )
        self.router = MessageRouter(
            self.registry, join_broadcast_full_table=self.settings.join_broadcast_full_table
        )
        self.authenticator = authenticator or TokenAuthenticator(self.settings.token)
        self._handlers: Dict[str, Callable[[Connection, Dict[str, Any]], Any]] = {
            "ready": self.on_ready,
            "message": self.on_message,
            "messageOne": self.on_message_one,
        }

    # ---------------- connection lifecycle ----------------
    def on_connect(self, connection: Connection, token: Optional[str] = None) -> None:
        """Gate A. Raises AuthenticationFailed or RateLimited; no peer state is touched."""

        try:
            self.authenticator.authenticate(token)
            self.admission.check_connection(connection.source_address)
        except RelayError as exc:
            connection.state = ConnectionState.REJECTED
            logger.info(
                "rejected connection=%s source=%s reason=%s",
                connection.connection_ref,
                connection.source_address,
                exc.reason,
            )
            raise
        connection.state = ConnectionState.AUTHENTICATED
        logger.info("connected connection=%s source=%s", connection.connection_ref, connection.source_address)

    def on_ready(self, connection: Connection, data: Dict[str, Any]) -> Optional[Peer]:
        if connection.state is not ConnectionState.AUTHENTICATED:
            logger.info("drop_ready connection=%s state=%s", connection.connection_ref, connection.state.value)
            return None
        try:
            frame = ReadyFrame.model_validate(data)
        except ValidationError as exc:
            logger.info("invalid_ready connection=%s errors=%d", connection.connection_ref, exc.error_count())
            return None

        with self.registry.lock:
            try:
                admission = self.admission.admit(
                    frame.peerId, connection, metadata=frame.metadata, peer_type=frame.peerType
                )
            except IdentityCollision as exc:
                if exc.evicted is not None:
                    self.router.announce_leave(exc.evicted)
                connection.emit("uniquenessError", {"error": exc.reason})
                connection.close(graceful=True, code=exc.code, reason="identity collision")
                connection.state = ConnectionState.REJECTED
                logger.info("uniqueness_error peer=%s connection=%s", frame.peerId, connection.connection_ref)
                return None
            if admission.evicted is not None:
                self.router.announce_leave(admission.evicted)
            connection.state = ConnectionState.REGISTERED
            self.router.announce_join(admission.peer)
        logger.info("registered peer=%s connection=%s peers=%d", frame.peerId, connection.connection_ref, self.registry.size())
        return admission.peer

    def on_disconnect(self, connection: Connection) -> Optional[Peer]:
        connection.state = ConnectionState.CLOSED
        with self.registry.lock:
            peer = self.registry.remove_by_connection(connection.connection_ref)
            if peer is not None:
                self.router.announce_leave(peer)
        if peer is not None:
            logger.info("disconnected connection=%s peer=%s", connection.connection_ref, peer.peer_id)
        else:
            logger.info("disconnected connection=%s", connection.connection_ref)
        return peer

    # ---------------- relayed traffic ----------------
    def on_message(self, connection: Connection, message: Dict[str, Any]) -> None:
        if not self._is_registered(connection, "message"):
            return
        self.router.broadcast_except(connection.connection_ref, message)

    def on_message_one(self, connection: Connection, message: Dict[str, Any]) -> None:
        if not self._is_registered(connection, "messageOne"):
            return
        try:
            target = Envelope.model_validate(message).target
        except ValidationError:
            logger.info("invalid_envelope connection=%s", connection.connection_ref)
            return
        if target == BROADCAST:
            self.router.broadcast_except(connection.connection_ref, message)
        else:
            self.router.deliver_to(target, message)

    def dispatch(self, connection: Connection, event: str, data: Dict[str, Any]) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            logger.info("drop_unknown_type connection=%s type=%s", connection.connection_ref, event)
            return
        handler(connection, data)

    def _is_registered(self, connection: Connection, event: str) -> bool:
        if connection.state is ConnectionState.REGISTERED:
            return True
        logger.info("drop_unregistered connection=%s type=%s", connection.connection_ref, event)
        return False

    # ---------------- read side ----------------
    def connections(self) -> List[Dict[str, Any]]:
        return [peer.to_entry() for peer in self.registry.snapshot()]

    def status(self) -> Dict[str, int]:
        return {
            "peers": self.registry.size(),
            "capacity": self.admission.max_connections,
            "rateLimitedSources": self.rate_limiter.blocked_sources(),
        }
