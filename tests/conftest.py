import pytest

from signal_relay.config import RelaySettings
from signal_relay.connection import Connection, ConnectionState
from signal_relay.relay import SignalingRelay


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeConnection(Connection):
    """Records every frame instead of writing to a socket."""

    def __init__(self, ref=None, source_address="10.0.0.1"):
        super().__init__(ref, source_address)
        self.frames = []
        self.closed_with = None

    def emit(self, event, data):
        self.frames.append((event, data))

    def close(self, graceful=True, code=1000, reason=""):
        self.closed_with = (graceful, code, reason)
        self.state = ConnectionState.CLOSED

    @property
    def messages(self):
        return [data for event, data in self.frames if event == "message"]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_conn():
    counter = iter(range(1, 10_000))

    def _make(source_address="10.0.0.1"):
        return FakeConnection(f"conn-{next(counter)}", source_address)

    return _make


@pytest.fixture
def relay_factory(clock):
    def _make(**overrides):
        settings = RelaySettings(**{"rate_limit_max_attempts": 100, **overrides})
        return SignalingRelay(settings, clock=clock)

    return _make


@pytest.fixture
def join(make_conn, clock):
    """Connect and register a peer on *relay*, one clock tick apart."""

    def _join(relay, peer_id, peer_type=None, metadata=None, source_address="10.0.0.1"):
        conn = make_conn(source_address)
        relay.on_connect(conn)
        peer = relay.on_ready(conn, {"peerId": peer_id, "peerType": peer_type, "metadata": metadata or {}})
        clock.advance(1)
        return conn, peer

    return _join
