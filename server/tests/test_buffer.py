"""Tests for RollingBuffer."""

from __future__ import annotations

import pytest

from conftest import accel
from fallwatch.core.buffer import RollingBuffer


def test_empty_reads():
    buf = RollingBuffer(5)
    assert len(buf) == 0
    assert buf.recent(10) == []
    assert buf.latest is None


def test_keeps_last_capacity_samples_in_order():
    buf = RollingBuffer(100)
    for i in range(250):
        buf.append(accel(float(i), i))

    assert len(buf) == 100
    assert [s.timestamp_ms for s in buf] == list(range(150, 250))


def test_recent_returns_chronological_tail():
    buf = RollingBuffer(10)
    for i in range(7):
        buf.append(accel(1.0, i))

    assert [s.timestamp_ms for s in buf.recent(3)] == [4, 5, 6]
    assert [s.timestamp_ms for s in buf.recent(20)] == list(range(7))
    assert buf.recent(0) == []
    assert buf.latest.timestamp_ms == 6


def test_recent_does_not_mutate():
    buf = RollingBuffer(4)
    for i in range(4):
        buf.append(accel(1.0, i))
    buf.recent(2)
    buf.recent(2)
    assert len(buf) == 4


def test_clear():
    buf = RollingBuffer(4)
    buf.append(accel(1.0, 0))
    buf.clear()
    assert len(buf) == 0
    assert buf.capacity == 4


def test_invalid_capacity():
    with pytest.raises(ValueError):
        RollingBuffer(0)
