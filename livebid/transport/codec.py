"""Frame codec for the real-time channel."""

from __future__ import annotations

from typing import Any

import orjson

_ORJSON_OPTIONS = orjson.OPT_NAIVE_UTC | orjson.OPT_UTC_Z | orjson.OPT_NON_STR_KEYS


class FrameError(ValueError):
    """Raised when an inbound frame is not a valid event envelope."""


def dumps(payload: Any) -> bytes:
    return orjson.dumps(payload, option=_ORJSON_OPTIONS)


def loads(raw: str | bytes) -> Any:
    return orjson.loads(raw)


def encode_frame(event: str, data: Any) -> str:
    """Return the text frame for an outbound ``{"event", "data"}`` envelope."""
    return dumps({"event": event, "data": data}).decode("utf-8")


def decode_frame(raw: str | bytes) -> tuple[str, Any]:
    """Split an inbound text frame into its event name and data."""
    try:
        envelope = loads(raw)
    except orjson.JSONDecodeError as exc:
        raise FrameError("frame is not valid JSON") from exc
    if not isinstance(envelope, dict):
        raise FrameError("frame must be a JSON object")
    event = envelope.get("event")
    if not isinstance(event, str) or not event:
        raise FrameError("frame event name missing")
    return event, envelope.get("data")
