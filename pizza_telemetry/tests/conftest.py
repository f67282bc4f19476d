"""Shared test fixtures for pizza telemetry tests."""

import pytest

from pizza_telemetry.observability.metrics import MetricsStore


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    """A fresh store per test, with fixed host probes."""
    return MetricsStore(
        clock=clock,
        cpu_probe=lambda: 12.5,
        memory_probe=lambda: 42.0,
    )
