"""In-process metrics store for the pizza service.

Collaborators (middleware, route handlers) push events in through the
``record_*`` methods; the read endpoint and the exporter pull a consistent
``snapshot()`` back out. Every operation runs under one lock so a snapshot never
mixes fields from before and after a concurrent mutation.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, NamedTuple, Optional

from pizza_telemetry.observability.series import BoundedSeries
from pizza_telemetry.observability.system import cpu_usage_percentage, memory_usage_percentage
from pizza_telemetry.observability.window import WINDOW_MS, WindowedCounter
from pizza_telemetry.utils.time import epoch_ms

logger = logging.getLogger("pizza_telemetry.metrics")

TRACKED_METHODS = ("GET", "PUT", "POST", "DELETE")


class EndpointKey(NamedTuple):
    method: str
    route: str

    def __str__(self) -> str:
        return f"{self.method} {self.route}"


class MetricsStore:
    def __init__(
        self,
        series_capacity: int = 1000,
        endpoint_series_capacity: int = 100,
        clock: Callable[[], float] = epoch_ms,
        cpu_probe: Callable[[], float] = cpu_usage_percentage,
        memory_probe: Callable[[], float] = memory_usage_percentage,
    ) -> None:
        self._lock = Lock()
        self._series_capacity = series_capacity
        self._endpoint_series_capacity = endpoint_series_capacity
        self._clock = clock
        self._cpu_probe = cpu_probe
        self._memory_probe = memory_probe
        self._init_state()

    def _init_state(self) -> None:
        self._total_requests = 0
        self._requests_by_method: dict[str, int] = {method: 0 for method in TRACKED_METHODS}
        self._request_durations = BoundedSeries(self._series_capacity)
        self._active_users: set[str] = set()

        self._auth_successful = 0
        self._auth_failed = 0
        self._auth_success_window = WindowedCounter(self._clock)
        self._auth_failure_window = WindowedCounter(self._clock)

        self._pizzas_sold = 0
        self._pizza_revenue = 0.0
        self._pizzas_sold_window = WindowedCounter(self._clock)
        self._pizza_revenue_window = WindowedCounter(self._clock)
        self._pizza_creation_failures = 0
        self._pizza_creation_latencies = BoundedSeries(self._series_capacity)

        self._endpoint_latencies: dict[EndpointKey, BoundedSeries] = {}

    def now(self) -> float:
        """Current time on the store clock (epoch ms)."""
        return self._clock()

    @property
    def _windows(self) -> tuple[WindowedCounter, ...]:
        return (
            self._auth_success_window,
            self._auth_failure_window,
            self._pizzas_sold_window,
            self._pizza_revenue_window,
        )

    # ── HTTP requests ─────────────────────────────────────────

    def record_request_start(self) -> None:
        with self._lock:
            self._total_requests += 1

    def record_request_method(self, method: str) -> None:
        upper = (method or "").upper()
        with self._lock:
            if upper in self._requests_by_method:
                self._requests_by_method[upper] += 1

    def record_request_duration(self, duration_ms: float) -> None:
        with self._lock:
            self._request_durations.push(duration_ms, self._clock())

    def average_request_duration(self) -> float:
        with self._lock:
            return self._request_durations.average()

    # ── Active users ──────────────────────────────────────────

    def add_active_user(self, user_id: Optional[str]) -> None:
        if not user_id:
            return
        with self._lock:
            self._active_users.add(user_id)

    def remove_active_user(self, user_id: Optional[str]) -> None:
        if not user_id:
            return
        with self._lock:
            self._active_users.discard(user_id)

    def active_user_count(self) -> int:
        with self._lock:
            return len(self._active_users)

    # ── Authentication ────────────────────────────────────────

    def record_auth_success(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            self._auth_successful += 1
            self._auth_success_window.record(1, self._clock())
            if user_id:
                self._active_users.add(user_id)

    def record_auth_failure(self) -> None:
        with self._lock:
            self._auth_failed += 1
            self._auth_failure_window.record(1, self._clock())

    def auth_attempts_per_minute(self) -> dict[str, int]:
        with self._lock:
            return self._auth_per_minute(self._clock() - WINDOW_MS)

    def _auth_per_minute(self, horizon: float) -> dict[str, int]:
        successful = self._auth_success_window.count_since(horizon)
        failed = self._auth_failure_window.count_since(horizon)
        return {"successful": successful, "failed": failed, "total": successful + failed}

    # ── Pizza sales ───────────────────────────────────────────

    def record_pizza_sale(self, revenue: float, count: int = 1) -> None:
        """Record a completed order. Negative revenue or count is ignored."""
        if revenue < 0 or count < 0:
            logger.debug(f"Ignoring pizza sale with negative values (revenue={revenue}, count={count})")
            return
        with self._lock:
            now = self._clock()
            self._pizzas_sold += count
            self._pizza_revenue += revenue
            self._pizzas_sold_window.record(count, now)
            self._pizza_revenue_window.record(revenue, now)

    def record_pizza_creation_failure(self) -> None:
        with self._lock:
            self._pizza_creation_failures += 1

    def pizzas_sold_per_minute(self) -> int:
        with self._lock:
            return int(self._pizzas_sold_window.sum_since(self._clock() - WINDOW_MS))

    def revenue_per_minute(self) -> float:
        with self._lock:
            return float(self._pizza_revenue_window.sum_since(self._clock() - WINDOW_MS))

    # ── Latencies ─────────────────────────────────────────────

    def record_pizza_creation_latency(self, latency_ms: float) -> None:
        with self._lock:
            self._pizza_creation_latencies.push(latency_ms, self._clock())

    def average_pizza_creation_latency(self) -> float:
        with self._lock:
            return self._pizza_creation_latencies.average()

    def record_endpoint_latency(self, path: str, method: str, latency_ms: float) -> None:
        key = EndpointKey(method, path)
        with self._lock:
            series = self._endpoint_latencies.get(key)
            if series is None:
                series = BoundedSeries(self._endpoint_series_capacity)
                self._endpoint_latencies[key] = series
            series.push(latency_ms, self._clock())

    def average_endpoint_latency(self, path: str, method: str) -> float:
        with self._lock:
            series = self._endpoint_latencies.get(EndpointKey(method, path))
            return series.average() if series else 0.0

    def all_endpoint_latencies(self) -> dict[str, dict]:
        with self._lock:
            return self._endpoint_stats()

    def _endpoint_stats(self) -> dict[str, dict]:
        result: dict[str, dict] = {}
        for key, series in self._endpoint_latencies.items():
            if not series:
                continue
            result[str(key)] = {
                "average": series.average(),
                "count": len(series),
                "min": series.min(),
                "max": series.max(),
            }
        return result

    # ── Housekeeping ──────────────────────────────────────────

    def prune_windows(self, now: Optional[float] = None) -> int:
        """Drop windowed events older than the trailing minute.

        Returns the number of events removed across all windows.
        """
        with self._lock:
            horizon = (self._clock() if now is None else now) - WINDOW_MS
            return sum(window.prune_before(horizon) for window in self._windows)

    def reset(self) -> None:
        with self._lock:
            self._init_state()

    # ── Snapshot ──────────────────────────────────────────────

    def snapshot(self) -> dict:
        """Return every reported statistic, read atomically under the store lock."""
        with self._lock:
            now = self._clock()
            horizon = now - WINDOW_MS
            snap = {
                "http": {
                    "totalRequests": self._total_requests,
                    "requestsByMethod": dict(self._requests_by_method),
                    "averageRequestDuration": self._request_durations.average(),
                },
                "users": {
                    "activeUsers": len(self._active_users),
                },
                "auth": {
                    "totalSuccessful": self._auth_successful,
                    "totalFailed": self._auth_failed,
                    "perMinute": self._auth_per_minute(horizon),
                },
                "pizza": {
                    "totalSold": self._pizzas_sold,
                    "soldPerMinute": int(self._pizzas_sold_window.sum_since(horizon)),
                    "creationFailures": self._pizza_creation_failures,
                    "totalRevenue": self._pizza_revenue,
                    "revenuePerMinute": float(self._pizza_revenue_window.sum_since(horizon)),
                    "averageCreationLatency": self._pizza_creation_latencies.average(),
                },
                "endpoints": self._endpoint_stats(),
                "timestamp": now,
            }

        # Host probes are not store state; read them outside the lock.
        snap["system"] = {
            "cpuUsage": self._cpu_probe(),
            "memoryUsage": self._memory_probe(),
        }
        return snap
