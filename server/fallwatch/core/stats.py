"""Server statistics and active-device tracking.

Tracks in-memory counters, the most recent confirmed falls, and a sliding
window of devices currently streaming motion events.
No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass


@dataclass
class DeviceActivity:
    """Tracks a single device's recent activity."""
    last_seen: float          # time.monotonic() timestamp
    events_sent: int = 0
    falls: int = 0


class ServerStats:
    """Thread-safe server statistics with active-device tracking.

    A device is considered active if it sent motion events within
    ``active_window_seconds`` (default 120s).
    """

    def __init__(self, active_window_seconds: float = 120.0,
                 recent_falls_kept: int = 100) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.messages_received: int = 0
        self.messages_rejected: int = 0
        self.events_received: int = 0
        self.acceleration_samples: int = 0
        self.rotation_samples: int = 0
        self.samples_rejected: int = 0
        self.impacts_detected: int = 0
        self.falls_confirmed: int = 0
        self.falls_suppressed: int = 0
        self.pattern_timeouts: int = 0

        # device_id → DeviceActivity
        self._devices: dict[str, DeviceActivity] = {}
        self._recent_falls: deque[dict] = deque(maxlen=recent_falls_kept)

    def record_message(self, device_id: str, event_count: int) -> None:
        """Record that a batch of motion events was received from a device."""
        now = time.monotonic()
        with self._lock:
            self.messages_received += 1
            self.events_received += event_count
            if device_id in self._devices:
                dev = self._devices[device_id]
                dev.last_seen = now
                dev.events_sent += event_count
            else:
                self._devices[device_id] = DeviceActivity(
                    last_seen=now, events_sent=event_count,
                )

    def record_rejected_message(self) -> None:
        with self._lock:
            self.messages_rejected += 1

    def record_sample(self, channel: str) -> None:
        with self._lock:
            if channel == "rotation":
                self.rotation_samples += 1
            else:
                self.acceleration_samples += 1

    def record_rejected_sample(self, count: int = 1) -> None:
        with self._lock:
            self.samples_rejected += count

    def record_impact(self) -> None:
        with self._lock:
            self.impacts_detected += 1

    def record_fall(self, device_id: str, timestamp_ms: int, fall_count: int) -> None:
        with self._lock:
            self.falls_confirmed += 1
            if device_id in self._devices:
                self._devices[device_id].falls += 1
            self._recent_falls.append({
                "device_id": device_id[:8],
                "timestamp_ms": timestamp_ms,
                "fall_count": fall_count,
            })

    def record_suppressed(self) -> None:
        with self._lock:
            self.falls_suppressed += 1

    def record_timeout(self) -> None:
        with self._lock:
            self.pattern_timeouts += 1

    def forget_device(self, device_id: str) -> None:
        with self._lock:
            self._devices.pop(device_id, None)

    def recent_falls(self, limit: int | None = None) -> list[dict]:
        """Most recent confirmed falls, newest first."""
        with self._lock:
            falls = list(reversed(self._recent_falls))
        return falls if limit is None else falls[:limit]

    def _prune_stale_devices(self, now: float) -> None:
        """Remove devices not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [did for did, dev in self._devices.items() if dev.last_seen < cutoff]
        for did in stale:
            del self._devices[did]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_devices(now_mono)

            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "messages_received": self.messages_received,
                "messages_rejected": self.messages_rejected,
                "events_received": self.events_received,
                "acceleration_samples": self.acceleration_samples,
                "rotation_samples": self.rotation_samples,
                "samples_rejected": self.samples_rejected,
                "impacts_detected": self.impacts_detected,
                "falls_confirmed": self.falls_confirmed,
                "falls_suppressed": self.falls_suppressed,
                "pattern_timeouts": self.pattern_timeouts,
                "active_devices": {
                    "total": len(self._devices),
                    "with_falls": sum(1 for dev in self._devices.values() if dev.falls),
                    "window_seconds": self._active_window,
                },
            }
