"""Asyncio periodic task base used by the background workers."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger("pizza_telemetry.scheduler")


class PeriodicTask(ABC):
    """Runs ``_tick()`` every ``interval`` seconds inside the running event loop.

    Each task owns its failure boundary: an exception raised by one tick is
    logged and the loop waits for the next interval as usual. Subclasses set
    ``run_immediately`` to tick once right after ``start()``.
    """

    name = "periodic-task"
    run_immediately = False

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop(), name=self.name)
        logger.info(f"{self.name} started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Stop the background loop gracefully."""
        if not self._running and self._task is None:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info(f"{self.name} stopped")

    async def _run_loop(self) -> None:
        """Main loop."""
        first = self.run_immediately
        while self._running:
            try:
                if not first:
                    await asyncio.sleep(self.interval)
                first = False
                if not self._running:
                    break
                await self._tick()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in {self.name} tick: {e}")

    @abstractmethod
    async def _tick(self) -> None:
        """One unit of periodic work."""
