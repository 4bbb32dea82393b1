"""Motion processor: validates incoming messages and feeds device detectors.

This is the core business logic behind the HTTP adapter. It depends on the
session registry and stats, not on FastAPI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from fallwatch.core.models import FallEvent, MotionMessageData
    from fallwatch.core.sessions import SessionRegistry
    from fallwatch.core.stats import ServerStats

log = structlog.get_logger()

# Minimum protocol version the server accepts.
MIN_PROTOCOL_VERSION = 1


class MotionProcessor:
    """Routes device-motion events to the sending device's detector."""

    def __init__(
        self,
        sessions: SessionRegistry,
        stats: ServerStats,
        max_events_per_message: int = 500,
    ) -> None:
        self._sessions = sessions
        self._stats = stats
        self._max_events = max_events_per_message

    @property
    def sessions(self) -> SessionRegistry:
        return self._sessions

    def process_message(self, msg: MotionMessageData) -> tuple[bool, str, list[FallEvent]]:
        """Process a client message. Returns (accepted, error_message, falls)."""
        if msg.protocol_version < MIN_PROTOCOL_VERSION:
            self._stats.record_rejected_message()
            return False, f"protocol_version {msg.protocol_version} too old, minimum is {MIN_PROTOCOL_VERSION}", []

        if not msg.device_id:
            self._stats.record_rejected_message()
            return False, "device_id is required", []

        if len(msg.events) > self._max_events:
            self._stats.record_rejected_message()
            return False, f"too many events ({len(msg.events)}), maximum is {self._max_events}", []

        session = self._sessions.get_or_create(msg.device_id)
        session.touch(len(msg.events))
        self._stats.record_message(msg.device_id, len(msg.events))

        falls: list[FallEvent] = []
        for event in msg.events:
            falls.extend(session.ingestor.ingest_event(event))

        if falls:
            log.warning("falls_reported", device=msg.device_id[:8],
                        count=len(falls), fall_count=falls[-1].fall_count)
        else:
            log.debug("motion_processed", device=msg.device_id[:8],
                      events=len(msg.events))

        return True, "", falls
