"""Tests for the sample ingestion boundary."""

from __future__ import annotations

import math

import pytest

from conftest import accel, fall_episode, rot
from fallwatch.core.detector import FallDetector
from fallwatch.core.ingestor import SampleIngestor, make_sample
from fallwatch.core.models import AxisReading, MotionEvent, PatternStatus, SensorSample
from fallwatch.core.stats import ServerStats


@pytest.fixture
def ingestor():
    return SampleIngestor(FallDetector(), stats=ServerStats(), device_id="device-under-test")


def test_make_sample_substitutes_zero_for_missing_axes():
    sample = make_sample(None, 3.0, None, 42)
    assert sample == SensorSample(0.0, 3.0, 0.0, 42)


@pytest.mark.parametrize("sample", [
    SensorSample(math.nan, 0.0, 9.8, 10),
    SensorSample(0.0, math.inf, 9.8, 10),
    SensorSample(0.0, 0.0, -math.inf, 10),
    SensorSample(0.0, 0.0, "9.8", 10),
    SensorSample(0.0, 0.0, 9.8, -1),
    SensorSample(0.0, 0.0, 9.8, 10.5),
    SensorSample(0.0, 0.0, 9.8, "soon"),
])
def test_malformed_samples_rejected(ingestor, sample):
    assert ingestor.ingest_acceleration(sample) is None
    assert ingestor.rejected == 1
    assert ingestor.detector.recent_acceleration(10) == []


def test_malformed_spike_does_not_arm(ingestor):
    ingestor.ingest_acceleration(SensorSample(math.nan, 30.0, 30.0, 10))
    ingestor.ingest_acceleration(SensorSample(30.0, 30.0, 30.0, -5))
    assert ingestor.detector.status() == PatternStatus(False, False, False, False)


def test_out_of_order_timestamp_rejected_per_channel(ingestor):
    ingestor.ingest_acceleration(accel(9.8, 1000))
    ingestor.ingest_acceleration(accel(9.8, 999))
    assert ingestor.rejected == 1

    # The rotation channel keeps its own clock.
    ingestor.ingest_rotation(rot(0.1, 500))
    assert ingestor.rejected == 1

    # Equal timestamps are fine.
    ingestor.ingest_acceleration(accel(9.8, 1000))
    assert ingestor.rejected == 1
    assert len(ingestor.detector.recent_acceleration(10)) == 2


def test_rejections_counted_in_stats():
    stats = ServerStats()
    ingestor = SampleIngestor(FallDetector(), stats=stats)
    ingestor.ingest_acceleration(accel(9.8, 10))
    ingestor.ingest_rotation(rot(0.2, 10))
    ingestor.ingest_rotation(SensorSample(math.nan, 0.0, 0.0, 20))

    snap = stats.snapshot()
    assert snap["acceleration_samples"] == 1
    assert snap["rotation_samples"] == 1
    assert snap["samples_rejected"] == 1


def test_valid_stream_detects_fall(ingestor):
    falls = []
    for channel, sample in fall_episode(1000):
        if channel == "a":
            result = ingestor.ingest_acceleration(sample)
        else:
            result = ingestor.ingest_rotation(sample)
        if result is not None:
            falls.append(result)
    assert len(falls) == 1
    assert ingestor.rejected == 0


def test_ingest_event_feeds_both_channels(ingestor):
    event = MotionEvent(
        timestamp_ms=100,
        acceleration_including_gravity=AxisReading(0.0, None, 9.8),
        rotation_rate=AxisReading(0.5, 0.0, None),
    )
    assert ingestor.ingest_event(event) == []

    assert ingestor.detector.recent_acceleration(1) == [SensorSample(0.0, 0.0, 9.8, 100)]
    assert ingestor.detector.recent_rotation(1) == [SensorSample(0.5, 0.0, 0.0, 100)]


def test_ingest_event_without_rotation(ingestor):
    ingestor.ingest_event(MotionEvent(timestamp_ms=5, acceleration_including_gravity=AxisReading(1, 2, 3)))
    assert len(ingestor.detector.recent_acceleration(10)) == 1
    assert ingestor.detector.recent_rotation(10) == []


def test_ingest_event_sequence_returns_fall(ingestor):
    events = [MotionEvent(timestamp_ms=i * 100, acceleration_including_gravity=AxisReading(0, 0, 9.8))
              for i in range(10)]
    events.append(MotionEvent(timestamp_ms=1000,
                              acceleration_including_gravity=AxisReading(0, 0, 20.0),
                              rotation_rate=AxisReading(0, 0, 0)))
    events.append(MotionEvent(timestamp_ms=1300,
                              acceleration_including_gravity=AxisReading(0, 0, 2.0),
                              rotation_rate=AxisReading(5.0, 0, 0)))
    for i in range(9):
        events.append(MotionEvent(timestamp_ms=1366 + i * 66,
                                  acceleration_including_gravity=AxisReading(0, 0, 2.0)))

    falls = []
    for event in events:
        falls.extend(ingestor.ingest_event(event))
    assert len(falls) == 1
    assert falls[0].fall_count == 1


def test_huge_finite_coordinates_accepted_without_overflow(ingestor):
    ingestor.ingest_acceleration(SensorSample(1e200, 0.0, 0.0, 10))
    assert ingestor.rejected == 0

    detector = ingestor.detector
    assert detector.status().impact_detected
    assert detector.snapshot().acceleration_magnitude == pytest.approx(1e200)

    # The stillness average copes with the huge sample until it leaves the window.
    for i in range(9):
        ingestor.ingest_acceleration(accel(1.0, 300 + i * 10))
    assert not detector.status().low_activity_after
    ingestor.ingest_acceleration(accel(1.0, 390))
    assert detector.status().low_activity_after


@pytest.mark.parametrize("sample", [
    SensorSample(10 ** 400, 0.0, 0.0, 10),
    SensorSample(0.0, 0.0, 9.8, 10 ** 400),
    SensorSample(1.5e308, 1.5e308, 0.0, 10),
])
def test_values_overflowing_float_rejected(ingestor, sample):
    assert ingestor.ingest_acceleration(sample) is None
    assert ingestor.ingest_rotation(sample) is None
    assert ingestor.rejected == 2
    assert ingestor.detector.recent_acceleration(10) == []
    assert ingestor.detector.recent_rotation(10) == []
    assert ingestor.detector.snapshot().acceleration_magnitude == 0.0
