"""Health check and monitoring endpoints."""

from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path

from fastapi import APIRouter, Query

router = APIRouter(prefix="/api/v1")

# Load build info once at import time.
_BUILD_INFO_PATH = Path(__file__).parent.parent / "build_info.json"
_BUILD_INFO: dict = {}
if _BUILD_INFO_PATH.exists():
    try:
        _BUILD_INFO = json.loads(_BUILD_INFO_PATH.read_text())
    except (json.JSONDecodeError, OSError):
        pass


@router.get("/health")
async def health() -> dict:
    """Basic health check."""
    from fallwatch.main import get_sessions, get_stats

    snapshot = get_stats().snapshot()
    result = {
        "status": "ok",
        "version": "0.1.0",
        "uptime_seconds": snapshot["uptime_seconds"],
        "sessions": len(get_sessions()),
    }
    result.update(_BUILD_INFO)
    return result


@router.get("/stats")
async def stats() -> dict:
    """Detailed server statistics.

    The ``active_devices`` section shows:
    - ``total``: devices that streamed events in the last N seconds
    - ``with_falls``: those among them with at least one confirmed fall
    - ``window_seconds``: the time window used for "active" calculation
    """
    from fallwatch.main import get_stats

    return get_stats().snapshot()


@router.get("/falls/recent")
async def recent_falls(limit: int = Query(default=20, ge=1, le=1000)) -> dict:
    """Most recently confirmed falls across all devices, newest first."""
    from fallwatch.main import get_stats

    falls = get_stats().recent_falls(limit)
    return {"falls": falls, "total": len(falls)}


@router.get("/config")
async def get_client_config() -> dict:
    """Detector parameters, so the client can label its live gauges."""
    from fallwatch.main import get_config
    from fallwatch.core.processor import MIN_PROTOCOL_VERSION

    config = get_config()
    return {
        "min_protocol_version": MIN_PROTOCOL_VERSION,
        "max_events_per_message": config.limits.max_events_per_message,
        "detector": asdict(config.detector),
    }
