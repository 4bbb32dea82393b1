"""FallWatch: core internal data models.

These are plain dataclasses with no framework dependencies.
JSON payloads are converted to/from these at the API boundary.
"""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class SensorSample:
    """One reading of the acceleration (m/s²) or rotation-rate (rad/s) channel."""
    x: float
    y: float
    z: float
    timestamp_ms: int

    @property
    def magnitude(self) -> float:
        return math.hypot(self.x, self.y, self.z)


def magnitude(sample: SensorSample | None) -> float:
    """Euclidean norm of a sample, 0 when there is no reading yet."""
    if sample is None:
        return 0.0
    return sample.magnitude


@dataclass
class PatternState:
    """Progress of the current fall episode.

    ``pattern_start_time_ms`` is set iff ``impact_detected`` is true.
    """
    impact_detected: bool = False
    acceleration_spike: bool = False
    high_angular_velocity: bool = False
    low_activity_after: bool = False
    pattern_start_time_ms: int | None = None

    def reset(self) -> None:
        self.impact_detected = False
        self.acceleration_spike = False
        self.high_angular_velocity = False
        self.low_activity_after = False
        self.pattern_start_time_ms = None

    @property
    def is_complete(self) -> bool:
        return (self.impact_detected and self.acceleration_spike
                and self.high_angular_velocity and self.low_activity_after)


@dataclass
class DetectionCounters:
    fall_count: int = 0
    last_fall_time_ms: int | None = None


@dataclass(frozen=True)
class PatternStatus:
    impact_detected: bool
    acceleration_spike: bool
    high_angular_velocity: bool
    low_activity_after: bool

    def to_dict(self) -> dict:
        return {
            "impact_detected": self.impact_detected,
            "acceleration_spike": self.acceleration_spike,
            "high_angular_velocity": self.high_angular_velocity,
            "low_activity_after": self.low_activity_after,
        }


@dataclass(frozen=True)
class FallEvent:
    timestamp_ms: int
    fall_count: int

    def to_dict(self) -> dict:
        return {"timestamp_ms": self.timestamp_ms, "fall_count": self.fall_count}


@dataclass(frozen=True)
class AxisReading:
    """Raw platform vector; any axis may be missing (None)."""
    x: float | None = None
    y: float | None = None
    z: float | None = None


@dataclass(frozen=True)
class MotionEvent:
    """One device-motion callback.

    Rotation axes are already mapped alpha→x, beta→y, gamma→z.
    """
    timestamp_ms: int
    acceleration_including_gravity: AxisReading | None = None
    rotation_rate: AxisReading | None = None


@dataclass(frozen=True)
class MotionMessageData:
    protocol_version: int
    device_id: str
    events: tuple[MotionEvent, ...] = ()


@dataclass(frozen=True)
class DetectorSnapshot:
    """Everything a live dashboard shows for one detector."""
    status: PatternStatus
    fall_count: int
    last_fall_time_ms: int | None
    acceleration_magnitude: float
    rotation_magnitude: float
    pattern_start_time_ms: int | None

    def to_dict(self) -> dict:
        return {
            "status": self.status.to_dict(),
            "fall_count": self.fall_count,
            "last_fall_time_ms": self.last_fall_time_ms,
            "acceleration_magnitude": round(self.acceleration_magnitude, 3),
            "rotation_magnitude": round(self.rotation_magnitude, 3),
            "pattern_start_time_ms": self.pattern_start_time_ms,
        }
