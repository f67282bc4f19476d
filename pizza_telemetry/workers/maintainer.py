"""Window maintenance: prunes expired events from the store's trailing-minute windows."""

from __future__ import annotations

import logging

from pizza_telemetry.observability.metrics import MetricsStore
from pizza_telemetry.workers.scheduler import PeriodicTask

logger = logging.getLogger("pizza_telemetry.maintainer")


class WindowMaintainer(PeriodicTask):
    """Keeps windowed-counter memory bounded.

    Queries filter by timestamp on their own, so pruning only affects memory;
    the interval bounds how stale the retained events can get.
    """

    name = "window-maintainer"

    def __init__(self, store: MetricsStore, interval: float = 10) -> None:
        super().__init__(interval)
        self.store = store

    async def _tick(self) -> None:
        removed = self.store.prune_windows()
        if removed:
            logger.debug(f"Pruned {removed} expired window events")
