"""Device-motion ingestion endpoint.

This is the thin FastAPI adapter. It parses HTTP requests, converts JSON
device-motion events to internal models, and calls the processor.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, Request, Response

from fallwatch.core.models import AxisReading, MotionEvent, MotionMessageData

router = APIRouter(prefix="/api/v1")


def _parse_reading(data: dict | None, keys: tuple[str, str, str]) -> AxisReading | None:
    if data is None:
        return None
    return AxisReading(*(data.get(k) for k in keys))


def _parse_json_event(data: dict) -> MotionEvent:
    """Parse one devicemotion event.

    Rotation rate uses the browser's alpha/beta/gamma naming; x/y/z are
    accepted as well.
    """
    rotation = data.get("rotation_rate")
    rotation_keys = ("alpha", "beta", "gamma")
    if rotation is not None and not any(k in rotation for k in rotation_keys):
        rotation_keys = ("x", "y", "z")

    return MotionEvent(
        timestamp_ms=data.get("timestamp_ms", 0),
        acceleration_including_gravity=_parse_reading(
            data.get("acceleration_including_gravity"), ("x", "y", "z")),
        rotation_rate=_parse_reading(rotation, rotation_keys),
    )


def _parse_json_message(body: dict) -> MotionMessageData:
    """Parse a motion message from JSON."""
    protocol_version = body.get("protocol_version", 1)
    if not isinstance(protocol_version, int) or isinstance(protocol_version, bool):
        raise TypeError("protocol_version must be an integer")
    device_id = body.get("device_id", "")
    if not isinstance(device_id, str):
        raise TypeError("device_id must be a string")

    return MotionMessageData(
        protocol_version=protocol_version,
        device_id=device_id,
        events=tuple(_parse_json_event(e) for e in body.get("events", [])),
    )


def _json_response(content: dict, status_code: int = 200) -> Response:
    return Response(
        content=json.dumps(content),
        status_code=status_code,
        media_type="application/json",
    )


@router.post("/motion")
async def receive_motion(request: Request) -> Response:
    """Receive device-motion events from a phone.

    Each event carries ``acceleration_including_gravity`` (m/s²) and/or
    ``rotation_rate`` (rad/s). Missing axes are treated as 0.
    """
    from fallwatch.main import get_processor

    processor = get_processor()
    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "application/json")

    if "json" not in content_type:
        return _json_response(
            {"accepted": False, "error": "unsupported content type, use application/json"},
            status_code=415,
        )

    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return _json_response({"accepted": False, "error": "invalid JSON"}, status_code=400)

    if not isinstance(body, dict) or not isinstance(body.get("events", []), list):
        return _json_response({"accepted": False, "error": "malformed message"}, status_code=400)

    try:
        msg = _parse_json_message(body)
    except (AttributeError, TypeError):
        return _json_response({"accepted": False, "error": "malformed message"}, status_code=400)

    accepted, error, falls = processor.process_message(msg)

    status = 200 if accepted else 422
    if error and "too old" in error:
        status = 426

    result = {
        "accepted": accepted,
        "error": error,
        "falls": [f.to_dict() for f in falls],
    }
    if accepted:
        session = processor.sessions.get(msg.device_id)
        result["status"] = session.detector.snapshot().to_dict()
    return _json_response(result, status_code=status)
