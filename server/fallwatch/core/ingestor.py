"""Sample ingestor: the boundary between platform motion events and the detector.

Malformed readings are dropped here (logged and counted) so the detector
only ever sees finite, time-ordered samples.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import structlog

from fallwatch.core.models import SensorSample

if TYPE_CHECKING:
    from fallwatch.core.detector import FallDetector
    from fallwatch.core.models import AxisReading, FallEvent, MotionEvent
    from fallwatch.core.stats import ServerStats

log = structlog.get_logger()

ACCELERATION = "acceleration"
ROTATION = "rotation"


def make_sample(x: float | None, y: float | None, z: float | None,
                timestamp_ms: int) -> SensorSample:
    """Build a sample, substituting 0 for axes the platform left empty."""
    return SensorSample(
        x=x if x is not None else 0.0,
        y=y if y is not None else 0.0,
        z=z if z is not None else 0.0,
        timestamp_ms=timestamp_ms,
    )


def _from_reading(reading: AxisReading, timestamp_ms: int) -> SensorSample:
    return make_sample(reading.x, reading.y, reading.z, timestamp_ms)


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_finite_float(value: object) -> float | None:
    """The value as a finite float, or None if it is not one."""
    if not _is_number(value):
        return None
    try:
        f = float(value)
    except OverflowError:
        return None
    return f if math.isfinite(f) else None


class SampleIngestor:
    """Validates samples per channel and forwards them to one detector."""

    def __init__(
        self,
        detector: FallDetector,
        stats: ServerStats | None = None,
        device_id: str = "",
    ) -> None:
        self._detector = detector
        self._stats = stats
        self._device_id = device_id
        self._last_ts: dict[str, int] = {}
        self.rejected: int = 0

    @property
    def detector(self) -> FallDetector:
        return self._detector

    def _rejection_reason(self, channel: str, sample: SensorSample) -> str | None:
        for axis in (sample.x, sample.y, sample.z):
            if _as_finite_float(axis) is None:
                return "non_finite_coordinate"
        try:
            mag = sample.magnitude
        except OverflowError:
            return "non_finite_magnitude"
        if not math.isfinite(mag):
            return "non_finite_magnitude"

        ts = sample.timestamp_ms
        ts_float = _as_finite_float(ts)
        if ts_float is None or not ts_float.is_integer():
            return "invalid_timestamp"
        if ts < 0:
            return "negative_timestamp"

        last = self._last_ts.get(channel)
        if last is not None and ts < last:
            return "out_of_order_timestamp"
        return None

    def _accept(self, channel: str, sample: SensorSample) -> bool:
        reason = self._rejection_reason(channel, sample)
        if reason is not None:
            self.rejected += 1
            if self._stats is not None:
                self._stats.record_rejected_sample()
            log.warning("sample_rejected", device=self._device_id[:8],
                        channel=channel, reason=reason,
                        timestamp_ms=sample.timestamp_ms)
            return False

        self._last_ts[channel] = int(sample.timestamp_ms)
        if self._stats is not None:
            self._stats.record_sample(channel)
        return True

    def ingest_acceleration(self, sample: SensorSample) -> FallEvent | None:
        if not self._accept(ACCELERATION, sample):
            return None
        return self._detector.ingest_acceleration(sample)

    def ingest_rotation(self, sample: SensorSample) -> FallEvent | None:
        if not self._accept(ROTATION, sample):
            return None
        return self._detector.ingest_rotation(sample)

    def ingest_event(self, event: MotionEvent) -> list[FallEvent]:
        """Feed one device-motion callback: acceleration first, then rotation."""
        falls: list[FallEvent] = []

        if event.acceleration_including_gravity is not None:
            fall = self.ingest_acceleration(
                _from_reading(event.acceleration_including_gravity, event.timestamp_ms))
            if fall is not None:
                falls.append(fall)

        if event.rotation_rate is not None:
            fall = self.ingest_rotation(_from_reading(event.rotation_rate, event.timestamp_ms))
            if fall is not None:
                falls.append(fall)

        return falls
