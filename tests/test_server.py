import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from signal_relay.config import RelaySettings
from signal_relay.server import create_app

TOKEN = "SIGNALING123"
URL = f"/signal?token={TOKEN}"


def _client(**overrides):
    settings = RelaySettings(**{"token": TOKEN, "static_dir": "", "rate_limit_max_attempts": 100, **overrides})
    return TestClient(create_app(settings))


def _ready(ws, peer_id, **extra):
    ws.send_json({"type": "ready", "data": {"peerId": peer_id, **extra}})
    return ws.receive_json()


def test_bad_token_is_closed_with_reason():
    with _client() as client:
        with client.websocket_connect("/signal?token=nope") as ws:
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()
        assert excinfo.value.code == 4401
        assert excinfo.value.reason == "Authentication error"
        assert client.get("/connections").json() == []


def test_bearer_header_is_accepted():
    with _client() as client:
        with client.websocket_connect("/signal", headers={"Authorization": f"Bearer {TOKEN}"}) as ws:
            frame = _ready(ws, "alice")
            assert frame["type"] == "message"


def test_rate_limit_rejects_excess_attempts():
    with _client(rate_limit_max_attempts=1) as client:
        with client.websocket_connect(URL):
            pass
        with client.websocket_connect(URL) as ws:
            with pytest.raises(WebSocketDisconnect) as excinfo:
                ws.receive_json()
        assert excinfo.value.code == 4429
        assert excinfo.value.reason == "Too many connection attempts"


def test_two_peers_handshake_and_leave():
    with _client() as client:
        with client.websocket_connect(URL) as a:
            opened = _ready(a, "a", peerType="browser", metadata={"room": 1})
            assert opened["data"]["payload"] == {"action": "open", "connections": [], "bePolite": False}

            with client.websocket_connect(URL) as b:
                welcome = _ready(b, "b")
                assert [e["peerId"] for e in welcome["data"]["payload"]["connections"]] == ["a"]

                notice = a.receive_json()
                assert notice["data"]["from"] == "b"
                assert notice["data"]["payload"]["bePolite"] is True

                b.send_json({"type": "messageOne", "data": {"from": "b", "target": "a", "message": {"sdp": "offer"}}})
                relayed = a.receive_json()
                assert relayed == {"type": "message", "data": {"from": "b", "target": "a", "message": {"sdp": "offer"}}}

                a.send_json({"type": "message", "data": {"from": "a", "target": "all", "message": "hi"}})
                assert b.receive_json()["data"]["message"] == "hi"

                listing = client.get("/connections").json()
                assert sorted(e["peerId"] for e in listing) == ["a", "b"]
                assert next(e for e in listing if e["peerId"] == "a")["metadata"] == {"room": 1}

            leave = a.receive_json()
            assert leave["data"]["from"] == "b"
            assert leave["data"]["payload"]["action"] == "close"
        assert client.get("/connections").json() == []


def test_uniqueness_error_then_disconnect():
    with _client() as client:
        with client.websocket_connect(URL) as a:
            _ready(a, "dup")
            with client.websocket_connect(URL) as b:
                b.send_json({"type": "ready", "data": {"peerId": "dup"}})
                err = b.receive_json()
                assert err["type"] == "uniquenessError"
                assert "dup is already connected" in err["data"]["error"]
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    b.receive_json()
                assert excinfo.value.code == 4409
            assert [e["peerId"] for e in client.get("/connections").json()] == ["dup"]


def test_capacity_eviction_over_websocket():
    with _client(max_connections=1) as client:
        with client.websocket_connect(URL) as a:
            _ready(a, "old")
            with client.websocket_connect(URL) as b:
                welcome = _ready(b, "new")
                assert welcome["data"]["payload"]["connections"] == []

                notice = a.receive_json()
                assert notice["data"]["payload"] == {"action": "close", "reason": "capacity"}
                with pytest.raises(WebSocketDisconnect) as excinfo:
                    a.receive_json()
                assert excinfo.value.code == 4503

                assert [e["peerId"] for e in client.get("/connections").json()] == ["new"]


def test_malformed_and_oversize_frames_are_dropped():
    with _client(max_message_bytes=200) as client:
        with client.websocket_connect(URL) as a:
            _ready(a, "a")
            with client.websocket_connect(URL) as b:
                _ready(b, "b")
                a.receive_json()  # b joined

                b.send_text("not json")
                b.send_json([1, 2, 3])
                b.send_json({"type": "message", "data": {"target": "all", "blob": "x" * 500}})
                b.send_json({"type": "message", "data": {"target": "all", "blob": "small"}})

                assert a.receive_json()["data"]["blob"] == "small"


def test_status_endpoint():
    with _client(max_connections=7) as client:
        assert client.get("/status").json() == {"peers": 0, "capacity": 7, "rateLimitedSources": 0}


def test_static_files_served_when_directory_exists(tmp_path):
    (tmp_path / "index.html").write_text("<h1>relay</h1>")
    with _client(static_dir=str(tmp_path)) as client:
        assert "relay" in client.get("/").text
        assert client.get("/connections").json() == []
