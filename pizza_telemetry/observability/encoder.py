"""Encode a metrics snapshot into OTLP/JSON wire metrics."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

SUM = "sum"
GAUGE = "gauge"
AS_INT = "asInt"
AS_DOUBLE = "asDouble"

CUMULATIVE = "AGGREGATION_TEMPORALITY_CUMULATIVE"

_NON_WORD = re.compile(r"[^a-zA-Z0-9_]")


@dataclass(frozen=True)
class WireMetric:
    """One statistic ready for transmission to the metrics backend."""
    name: str
    unit: str
    kind: str  # "sum" (monotonic cumulative counter) or "gauge"
    value_type: str  # "asInt" or "asDouble"
    value: int | float
    time_unix_nano: int
    attributes: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict:
        body: dict = {
            "dataPoints": [
                {
                    self.value_type: self.value,
                    "timeUnixNano": self.time_unix_nano,
                    "attributes": [
                        {"key": key, "value": {"stringValue": value}}
                        for key, value in self.attributes
                    ],
                }
            ],
        }
        if self.kind == SUM:
            body["aggregationTemporality"] = CUMULATIVE
            body["isMonotonic"] = True
        return {"name": self.name, "unit": self.unit, self.kind: body}


def sanitize_endpoint(key: str) -> str:
    """Make an endpoint key safe for use as an attribute value, e.g. ``GET /api/order`` -> ``GET__api_order``."""
    return _NON_WORD.sub("_", key)


def encode_snapshot(snapshot: dict, source: str) -> list[WireMetric]:
    """Flatten a ``MetricsStore.snapshot()`` into an ordered batch of wire metrics."""
    time_unix_nano = int(snapshot["timestamp"] * 1_000_000)
    base_attrs = (("source", source),)

    def metric(name, value, unit, kind, value_type, attributes=base_attrs) -> WireMetric:
        coerced = int(value) if value_type == AS_INT else float(value)
        return WireMetric(
            name=name,
            unit=unit,
            kind=kind,
            value_type=value_type,
            value=coerced,
            time_unix_nano=time_unix_nano,
            attributes=attributes,
        )

    http = snapshot["http"]
    by_method = http["requestsByMethod"]
    auth = snapshot["auth"]
    pizza = snapshot["pizza"]
    system = snapshot["system"]

    batch = [
        # HTTP
        metric("http_requests_total", http["totalRequests"], "requests", SUM, AS_INT),
        metric("http_requests_get", by_method.get("GET", 0), "requests", SUM, AS_INT),
        metric("http_requests_post", by_method.get("POST", 0), "requests", SUM, AS_INT),
        metric("http_requests_put", by_method.get("PUT", 0), "requests", SUM, AS_INT),
        metric("http_requests_delete", by_method.get("DELETE", 0), "requests", SUM, AS_INT),
        metric("http_request_duration_avg", http["averageRequestDuration"], "ms", GAUGE, AS_DOUBLE),
        # Users
        metric("active_users", snapshot["users"]["activeUsers"], "users", GAUGE, AS_INT),
        # Auth
        metric("auth_attempts_successful_total", auth["totalSuccessful"], "attempts", SUM, AS_INT),
        metric("auth_attempts_failed_total", auth["totalFailed"], "attempts", SUM, AS_INT),
        metric("auth_attempts_successful_per_minute", auth["perMinute"]["successful"], "attempts/min", GAUGE, AS_INT),
        metric("auth_attempts_failed_per_minute", auth["perMinute"]["failed"], "attempts/min", GAUGE, AS_INT),
        # Pizza
        metric("pizzas_sold_total", pizza["totalSold"], "pizzas", SUM, AS_INT),
        metric("pizzas_sold_per_minute", pizza["soldPerMinute"], "pizzas/min", GAUGE, AS_INT),
        metric("pizza_creation_failures_total", pizza["creationFailures"], "failures", SUM, AS_INT),
        metric("pizza_revenue_total", pizza["totalRevenue"], "dollars", SUM, AS_DOUBLE),
        metric("pizza_revenue_per_minute", pizza["revenuePerMinute"], "dollars/min", GAUGE, AS_DOUBLE),
        metric("pizza_creation_latency_avg", pizza["averageCreationLatency"], "ms", GAUGE, AS_DOUBLE),
        # System
        metric("system_cpu_usage", system["cpuUsage"], "percent", GAUGE, AS_DOUBLE),
        metric("system_memory_usage", system["memoryUsage"], "percent", GAUGE, AS_DOUBLE),
    ]

    for endpoint, stats in snapshot["endpoints"].items():
        attrs = base_attrs + (("endpoint", sanitize_endpoint(endpoint)),)
        batch.append(metric("endpoint_latency_avg", stats["average"], "ms", GAUGE, AS_DOUBLE, attrs))
        batch.append(metric("endpoint_latency_min", stats["min"], "ms", GAUGE, AS_DOUBLE, attrs))
        batch.append(metric("endpoint_latency_max", stats["max"], "ms", GAUGE, AS_DOUBLE, attrs))

    return batch


def build_export_payload(metrics: Iterable[WireMetric]) -> dict:
    """Wrap a batch in the OTLP ``resourceMetrics`` envelope."""
    return {
        "resourceMetrics": [
            {
                "scopeMetrics": [
                    {"metrics": [m.to_dict() for m in metrics]},
                ],
            },
        ],
    }
