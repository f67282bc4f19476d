"""Fixed-capacity sample buffers with drop-oldest eviction."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class Sample:
    """One observation (latency, duration, ...) taken at ``timestamp`` (epoch ms)."""
    value: float
    timestamp: float


class BoundedSeries:
    """Append-only FIFO of samples capped at ``capacity`` entries.

    Pushing past capacity evicts the single oldest sample. Reads return copies,
    so a list handed out by :meth:`values` never changes under the caller.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._samples: deque[Sample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._samples)

    def push(self, value: float, timestamp: float) -> None:
        self._samples.append(Sample(value=float(value), timestamp=timestamp))

    def values(self) -> list[Sample]:
        return list(self._samples)

    def average(self) -> float:
        if not self._samples:
            return 0.0
        return sum(s.value for s in self._samples) / len(self._samples)

    def min(self) -> float:
        # Raises ValueError on an empty series.
        return min(s.value for s in self._samples)

    def max(self) -> float:
        return max(s.value for s in self._samples)
