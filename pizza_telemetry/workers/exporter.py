"""Metrics exporter — periodically pushes store snapshots to an OTLP/JSON endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from pizza_telemetry.observability.encoder import WireMetric, build_export_payload, encode_snapshot
from pizza_telemetry.observability.metrics import MetricsStore
from pizza_telemetry.workers.scheduler import PeriodicTask

logger = logging.getLogger("pizza_telemetry.exporter")


class MetricsExporter(PeriodicTask):
    """Snapshot -> encode -> POST, once per interval.

    The push runs as its own task so a slow backend never delays the next tick.
    Failed pushes are logged and dropped; nothing is retried.
    """

    name = "metrics-exporter"
    run_immediately = True

    def __init__(
        self,
        store: MetricsStore,
        url: str,
        api_key: str,
        source: str,
        user_id: str = "",
        interval: float = 30,
        timeout: float = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(interval)
        self.store = store
        self.url = url
        self.api_key = api_key
        self.source = source
        self.user_id = user_id
        self.timeout = timeout
        self._transport = transport
        self._inflight: set[asyncio.Task] = set()

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.api_key)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    def _headers(self) -> dict[str, str]:
        token = f"{self.user_id}:{self.api_key}" if self.user_id else self.api_key
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def start(self) -> None:
        if not self.enabled:
            logger.info("○ Metrics export disabled (METRICS_URL / METRICS_API_KEY not set)")
            return
        await super().start()

    async def stop(self) -> None:
        await super().stop()
        pending = list(self._inflight)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._inflight.clear()

    def collect(self) -> list[WireMetric]:
        """Take a snapshot and encode it; no I/O happens here."""
        return encode_snapshot(self.store.snapshot(), self.source)

    async def push(self, batch: list[WireMetric]) -> bool:
        """POST one batch. Returns True on a 2xx response; never raises."""
        try:
            payload = build_export_payload(batch)
            async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
                resp = await client.post(self.url, json=payload, headers=self._headers())
        except Exception as exc:
            logger.error(f"Error pushing metrics to {self.url}: {exc}")
            return False

        if not resp.is_success:
            logger.error(f"Failed to push metrics: HTTP status {resp.status_code}")
            return False

        logger.info(f"✓ Pushed {len(batch)} metrics")
        return True

    async def export_once(self) -> bool:
        """Collect and push synchronously (used for manual flushes and tests)."""
        return await self.push(self.collect())

    async def _tick(self) -> None:
        batch = self.collect()
        task = asyncio.create_task(self.push(batch))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
