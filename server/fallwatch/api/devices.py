"""Per-device detector endpoints: status, reset, stop."""

from __future__ import annotations

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

router = APIRouter(prefix="/api/v1")


def _not_found(device_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": f"no active session for device {device_id}"},
    )


@router.get("/devices")
async def list_devices() -> JSONResponse:
    """Devices with a running detector."""
    from fallwatch.main import get_sessions

    ids = get_sessions().device_ids()
    return JSONResponse(content={"devices": ids, "total": len(ids)})


@router.get("/devices/{device_id}/status")
async def device_status(device_id: str) -> JSONResponse:
    """Live pattern flags, fall counters and latest readings for one device."""
    from fallwatch.main import get_sessions

    session = get_sessions().get(device_id)
    if session is None:
        return _not_found(device_id)

    content = session.detector.snapshot().to_dict()
    content["device_id"] = device_id
    content["started_at"] = session.started_at
    content["events_received"] = session.events_received
    content["samples_rejected"] = session.ingestor.rejected
    return JSONResponse(content=content)


@router.post("/devices/{device_id}/reset")
async def reset_device(
    device_id: str,
    counters: bool = Query(default=True),
) -> JSONResponse:
    """Return the detector to idle.

    With ``counters=false`` only the current episode is discarded and the
    fall count is kept.
    """
    from fallwatch.main import get_sessions

    session = get_sessions().get(device_id)
    if session is None:
        return _not_found(device_id)

    if counters:
        session.detector.reset()
    else:
        session.detector.reset_pattern()
    return JSONResponse(content=session.detector.snapshot().to_dict())


@router.delete("/devices/{device_id}")
async def stop_device(device_id: str) -> JSONResponse:
    """Stop detection for a device and drop its session."""
    from fallwatch.main import get_sessions

    if not get_sessions().remove(device_id):
        return _not_found(device_id)
    return JSONResponse(content={"stopped": device_id})
