"""Per-device detector sessions.

Creating a session is the server-side "start detection" for a device and
removing it is "stop". Sessions never share buffers or pattern state.
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

import structlog

from fallwatch.core.detector import FallDetector
from fallwatch.core.ingestor import SampleIngestor

if TYPE_CHECKING:
    from fallwatch.config import DetectorConfig
    from fallwatch.core.models import FallEvent, SensorSample
    from fallwatch.core.stats import ServerStats

log = structlog.get_logger()


class DeviceSession:
    """One device's detector, its ingestion boundary, and stats forwarding."""

    def __init__(self, device_id: str, config: DetectorConfig,
                 stats: ServerStats | None = None) -> None:
        self.device_id = device_id
        self.started_at = time.time()
        self.last_seen = time.monotonic()
        self.events_received = 0
        self._stats = stats
        self.detector = FallDetector(config, observer=self)
        self.ingestor = SampleIngestor(self.detector, stats=stats, device_id=device_id)

    def touch(self, event_count: int) -> None:
        self.last_seen = time.monotonic()
        self.events_received += event_count

    # DetectorObserver

    def on_impact(self, sample: SensorSample) -> None:
        if self._stats is not None:
            self._stats.record_impact()

    def on_fall_confirmed(self, event: FallEvent) -> None:
        if self._stats is not None:
            self._stats.record_fall(self.device_id, event.timestamp_ms, event.fall_count)

    def on_fall_suppressed(self, timestamp_ms: int) -> None:
        if self._stats is not None:
            self._stats.record_suppressed()

    def on_pattern_timeout(self, pattern_start_time_ms: int) -> None:
        if self._stats is not None:
            self._stats.record_timeout()


class SessionRegistry:
    """Thread-safe map of device_id → DeviceSession.

    Sessions not seen for ``idle_timeout_seconds`` are dropped, which is the
    same as the device stopping detection.
    """

    def __init__(self, config: DetectorConfig, stats: ServerStats | None = None,
                 idle_timeout_seconds: float = 120.0) -> None:
        self._config = config
        self._stats = stats
        self._idle_timeout = idle_timeout_seconds
        self._lock = threading.Lock()
        self._sessions: dict[str, DeviceSession] = {}

    def _prune_idle_sessions(self, now: float) -> None:
        """Drop sessions idle past the timeout. Caller holds lock."""
        cutoff = now - self._idle_timeout
        stale = [did for did, s in self._sessions.items() if s.last_seen < cutoff]
        for did in stale:
            session = self._sessions.pop(did)
            log.info("session_expired", device=did[:8],
                     idle_seconds=round(now - session.last_seen, 1),
                     events=session.events_received)

    def get_or_create(self, device_id: str) -> DeviceSession:
        with self._lock:
            self._prune_idle_sessions(time.monotonic())
            session = self._sessions.get(device_id)
            if session is None:
                session = DeviceSession(device_id, self._config, self._stats)
                self._sessions[device_id] = session
                log.info("session_started", device=device_id[:8])
            return session

    def get(self, device_id: str) -> DeviceSession | None:
        with self._lock:
            self._prune_idle_sessions(time.monotonic())
            return self._sessions.get(device_id)

    def remove(self, device_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(device_id, None)
        if session is None:
            return False
        if self._stats is not None:
            self._stats.forget_device(device_id)
        log.info("session_stopped", device=device_id[:8],
                 events=session.events_received,
                 falls=session.detector.counters.fall_count)
        return True

    def device_ids(self) -> list[str]:
        with self._lock:
            self._prune_idle_sessions(time.monotonic())
            return sorted(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            self._prune_idle_sessions(time.monotonic())
            return len(self._sessions)
