"""Bounded FIFO of recent sensor samples, one per channel."""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from fallwatch.core.models import SensorSample


class RollingBuffer:
    """Keeps the last ``capacity`` samples in arrival order."""

    def __init__(self, capacity: int = 100) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._samples: deque[SensorSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def append(self, sample: SensorSample) -> None:
        # deque with maxlen drops the oldest sample once full.
        self._samples.append(sample)

    def recent(self, k: int) -> list[SensorSample]:
        """Last ``k`` samples, oldest first. Shorter (or empty) if not enough."""
        if k <= 0:
            return []
        n = len(self._samples)
        start = max(n - k, 0)
        return [self._samples[i] for i in range(start, n)]

    @property
    def latest(self) -> SensorSample | None:
        return self._samples[-1] if self._samples else None

    def clear(self) -> None:
        self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[SensorSample]:
        return iter(list(self._samples))
