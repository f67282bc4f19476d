"""Timestamped event logs queried over a trailing time window."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from pizza_telemetry.utils.time import epoch_ms

# Trailing-minute window shared by queries and pruning.
WINDOW_MS = 60_000


@dataclass(frozen=True)
class WindowedEvent:
    timestamp: float
    magnitude: float


class WindowedCounter:
    """Ordered log of events filtered by a strict ``timestamp > horizon`` test.

    The log only shrinks through :meth:`prune_before`; queries never depend on
    pruning having happened.
    """

    def __init__(self, clock: Callable[[], float] = epoch_ms) -> None:
        self._clock = clock
        self._events: list[WindowedEvent] = []

    def __len__(self) -> int:
        return len(self._events)

    def record(self, magnitude: float = 1, timestamp: Optional[float] = None) -> None:
        if timestamp is None:
            timestamp = self._clock()
        self._events.append(WindowedEvent(timestamp=timestamp, magnitude=magnitude))

    def sum_since(self, horizon: float) -> float:
        return sum(e.magnitude for e in self._events if e.timestamp > horizon)

    def count_since(self, horizon: float) -> int:
        return sum(1 for e in self._events if e.timestamp > horizon)

    def prune_before(self, horizon: float) -> int:
        """Drop events at or before ``horizon``; return how many were removed."""
        before = len(self._events)
        self._events[:] = [e for e in self._events if e.timestamp > horizon]
        return before - len(self._events)
