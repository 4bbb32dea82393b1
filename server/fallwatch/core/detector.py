"""Fall pattern matcher.

A fall is recognised as three sub-conditions seen in one episode:

1. Impact: an acceleration sample whose magnitude exceeds
   ``acceleration_threshold``. Arms the detector and starts the episode.
2. Rotation: a rotation-rate sample above ``angular_velocity_threshold``
   within ``rotation_window_ms`` of the impact.
3. Stillness: after ``low_activity_start_ms``, the mean magnitude of the last
   ``low_activity_samples`` acceleration samples drops below
   ``low_activity_threshold``.

Rotation and stillness may arrive in either order. Once all three hold within
``pattern_duration_ms`` the episode is consumed; it counts as a fall only if
the previous fall is more than ``cooldown_ms`` old. An episode older than
``pattern_duration_ms`` is discarded.

Time is taken from sample timestamps, never from the wall clock.
"""

from __future__ import annotations

import threading
from typing import Callable, Protocol

import structlog

from fallwatch.config import DetectorConfig
from fallwatch.core.buffer import RollingBuffer
from fallwatch.core.models import (
    DetectionCounters,
    DetectorSnapshot,
    FallEvent,
    PatternState,
    PatternStatus,
    SensorSample,
    magnitude,
)

log = structlog.get_logger()


class DetectorObserver(Protocol):
    """Receives the pattern transitions a dashboard renders."""

    def on_impact(self, sample: SensorSample) -> None: ...

    def on_fall_confirmed(self, event: FallEvent) -> None: ...

    def on_fall_suppressed(self, timestamp_ms: int) -> None: ...

    def on_pattern_timeout(self, pattern_start_time_ms: int) -> None: ...


class FallDetector:
    """Online matcher for the impact → rotation → stillness pattern.

    One instance per device. All state is private and every mutation runs
    under a single lock, so acceleration and rotation callbacks may arrive
    from different threads.
    """

    def __init__(
        self,
        config: DetectorConfig | None = None,
        observer: DetectorObserver | None = None,
        on_fall: Callable[[FallEvent], None] | None = None,
    ) -> None:
        self._config = config or DetectorConfig()
        self._config.validate()
        self._observer = observer
        self._on_fall = on_fall
        self._lock = threading.Lock()

        self._accel = RollingBuffer(self._config.buffer_size)
        self._rotation = RollingBuffer(self._config.buffer_size)
        self._pattern = PatternState()
        self._counters = DetectionCounters()

    @property
    def config(self) -> DetectorConfig:
        return self._config

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_acceleration(self, sample: SensorSample) -> FallEvent | None:
        """Feed one acceleration sample. Returns the fall it confirmed, if any."""
        cfg = self._config
        with self._lock:
            mag = sample.magnitude
            self._accel.append(sample)
            pattern = self._pattern

            if mag > cfg.acceleration_threshold and not pattern.impact_detected:
                pattern.impact_detected = True
                pattern.acceleration_spike = True
                pattern.pattern_start_time_ms = sample.timestamp_ms
                log.info("impact_detected", magnitude=round(mag, 2),
                         timestamp_ms=sample.timestamp_ms)
                if self._observer is not None:
                    self._observer.on_impact(sample)

            if pattern.impact_detected and not pattern.low_activity_after:
                since_impact = sample.timestamp_ms - pattern.pattern_start_time_ms
                if cfg.low_activity_start_ms < since_impact < cfg.pattern_duration_ms:
                    recent = self._accel.recent(cfg.low_activity_samples)
                    avg = sum(s.magnitude for s in recent) / len(recent)
                    if avg < cfg.low_activity_threshold:
                        pattern.low_activity_after = True
                        log.debug("low_activity_detected", avg_magnitude=round(avg, 2),
                                  since_impact_ms=since_impact)

            return self._check_pattern(sample.timestamp_ms)

    def ingest_rotation(self, sample: SensorSample) -> FallEvent | None:
        """Feed one rotation-rate sample. Returns the fall it confirmed, if any."""
        cfg = self._config
        with self._lock:
            mag = sample.magnitude
            self._rotation.append(sample)
            pattern = self._pattern

            if mag > cfg.angular_velocity_threshold and pattern.impact_detected:
                since_impact = sample.timestamp_ms - pattern.pattern_start_time_ms
                if 0 < since_impact < cfg.rotation_window_ms and not pattern.high_angular_velocity:
                    pattern.high_angular_velocity = True
                    log.info("high_angular_velocity_detected", magnitude=round(mag, 2),
                             since_impact_ms=since_impact)

            return self._check_pattern(sample.timestamp_ms)

    def _check_pattern(self, now_ms: int) -> FallEvent | None:
        """Completion and timeout rules. Caller holds the lock."""
        pattern = self._pattern
        if not pattern.impact_detected or pattern.pattern_start_time_ms is None:
            return None

        cfg = self._config
        start = pattern.pattern_start_time_ms
        since_start = now_ms - start
        event = None

        if pattern.is_complete and since_start <= cfg.pattern_duration_ms:
            last = self._counters.last_fall_time_ms
            since_last_fall = float("inf") if last is None else now_ms - last

            if since_last_fall > cfg.cooldown_ms:
                self._counters.fall_count += 1
                self._counters.last_fall_time_ms = now_ms
                event = FallEvent(timestamp_ms=now_ms, fall_count=self._counters.fall_count)
                log.warning("fall_confirmed", timestamp_ms=now_ms,
                            fall_count=event.fall_count, pattern_ms=since_start)
                if self._observer is not None:
                    self._observer.on_fall_confirmed(event)
                if self._on_fall is not None:
                    self._on_fall(event)
            else:
                log.info("fall_suppressed_cooldown", timestamp_ms=now_ms,
                         since_last_fall_ms=since_last_fall)
                if self._observer is not None:
                    self._observer.on_fall_suppressed(now_ms)

            # A candidate is consumed once, counted or not.
            pattern.reset()
            return event

        if since_start > cfg.pattern_duration_ms:
            log.debug("pattern_timeout", pattern_start_time_ms=start, elapsed_ms=since_start,
                      high_angular_velocity=pattern.high_angular_velocity,
                      low_activity_after=pattern.low_activity_after)
            pattern.reset()
            if self._observer is not None:
                self._observer.on_pattern_timeout(start)

        return None

    # ------------------------------------------------------------------
    # Control and inspection
    # ------------------------------------------------------------------

    def reset_pattern(self) -> None:
        """Discard the current episode. Counters are untouched."""
        with self._lock:
            self._pattern.reset()

    def reset(self, clear_counters: bool = True) -> None:
        """Return to IDLE and, by default, clear the fall counters. Idempotent."""
        with self._lock:
            self._pattern.reset()
            if clear_counters:
                self._counters = DetectionCounters()
        log.info("detector_reset", counters_cleared=clear_counters)

    def status(self) -> PatternStatus:
        with self._lock:
            return self._status()

    def _status(self) -> PatternStatus:
        p = self._pattern
        return PatternStatus(
            impact_detected=p.impact_detected,
            acceleration_spike=p.acceleration_spike,
            high_angular_velocity=p.high_angular_velocity,
            low_activity_after=p.low_activity_after,
        )

    @property
    def counters(self) -> DetectionCounters:
        with self._lock:
            return DetectionCounters(
                fall_count=self._counters.fall_count,
                last_fall_time_ms=self._counters.last_fall_time_ms,
            )

    @property
    def pattern_start_time_ms(self) -> int | None:
        with self._lock:
            return self._pattern.pattern_start_time_ms

    def recent_acceleration(self, k: int) -> list[SensorSample]:
        with self._lock:
            return self._accel.recent(k)

    def recent_rotation(self, k: int) -> list[SensorSample]:
        with self._lock:
            return self._rotation.recent(k)

    def snapshot(self) -> DetectorSnapshot:
        with self._lock:
            return DetectorSnapshot(
                status=self._status(),
                fall_count=self._counters.fall_count,
                last_fall_time_ms=self._counters.last_fall_time_ms,
                acceleration_magnitude=magnitude(self._accel.latest),
                rotation_magnitude=magnitude(self._rotation.latest),
                pattern_start_time_ms=self._pattern.pattern_start_time_ms,
            )
