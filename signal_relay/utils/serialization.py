"""Frame encoding helpers shared by the server and the client."""

from __future__ import annotations

from typing import Any, Dict, Tuple

import orjson


def dumps(obj: Any) -> bytes:
    return orjson.dumps(obj)


def dumps_text(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def loads(data: bytes | str) -> Any:
    return orjson.loads(data)


def encode_frame(event: str, data: Any) -> str:
    """Wrap *data* in the ``{"type": event, "data": data}`` frame."""

    return dumps_text({"type": event, "data": data})


def decode_frame(raw: bytes | str) -> Tuple[str, Dict[str, Any]]:
    """Return ``(event, data)`` or raise ValueError for anything that is not a frame."""

    obj = loads(raw)
    if not isinstance(obj, dict):
        raise ValueError("frame must be a JSON object")
    event = obj.get("type")
    if not isinstance(event, str) or not event:
        raise ValueError("frame type must be a non-empty string")
    data = obj.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("frame data must be an object")
    return event, data


__all__ = ["decode_frame", "dumps", "dumps_text", "encode_frame", "loads"]
