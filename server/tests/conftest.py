"""Shared test fixtures."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

import fallwatch.main as main_module
from fallwatch.config import AppConfig
from fallwatch.core.models import SensorSample


@pytest.fixture(autouse=True)
def _init_server():
    """Initialize server singletons for every test."""
    config = AppConfig()
    config.logging.level = "warning"

    stats, sessions, processor = main_module.build_components(config)

    # Patch module-level singletons
    main_module._config = config
    main_module._stats = stats
    main_module._sessions = sessions
    main_module._processor = processor

    yield

    # Cleanup
    main_module._config = None
    main_module._stats = None
    main_module._sessions = None
    main_module._processor = None


@pytest.fixture
async def client():
    from fallwatch.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def accel(magnitude: float, timestamp_ms: int) -> SensorSample:
    """Acceleration sample pointing straight down with the given magnitude."""
    return SensorSample(0.0, 0.0, magnitude, timestamp_ms)


def rot(magnitude: float, timestamp_ms: int) -> SensorSample:
    return SensorSample(magnitude, 0.0, 0.0, timestamp_ms)


def fall_episode(start_ms: int, rest_before: bool = True,
                 still_magnitude: float = 2.0) -> list[tuple[str, SensorSample]]:
    """A scripted fall: rest, impact at ``start_ms``, twist, then stillness.

    Returns ("a" | "r", sample) pairs in delivery order.
    """
    stream: list[tuple[str, SensorSample]] = []
    if rest_before:
        for i in range(10):
            stream.append(("a", accel(9.8, start_ms - 1000 + i * 100)))
    stream.append(("a", accel(20.0, start_ms)))
    stream.append(("r", rot(5.0, start_ms + 300)))
    for i in range(10):
        stream.append(("a", accel(still_magnitude, start_ms + 400 + i * 66)))
    return stream
