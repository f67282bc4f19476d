"""HTTP middleware feeding request events into the metrics store."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Request, Response

from pizza_telemetry.api.auth import resolve_user_id
from pizza_telemetry.logging_config import status_to_level
from pizza_telemetry.observability.metrics import MetricsStore

logger = logging.getLogger("pizza_telemetry.http")

# Requests that matched no route share one endpoint key.
UNMATCHED_ROUTE = "<unmatched>"


def _route_template(request: Request) -> str:
    # Route templates ("/api/order/{id}") keep per-endpoint series bounded.
    route = request.scope.get("route")
    return getattr(route, "path", None) or UNMATCHED_ROUTE


class _RequestTiming:
    """Records duration and endpoint latency for one request, exactly once."""

    def __init__(self, request: Request, store: MetricsStore) -> None:
        self.request = request
        self.store = store
        self.start = store.now()
        self._done = False

    def finish(self, status_code: int, exc: Optional[BaseException] = None) -> None:
        if self._done:
            return
        self._done = True

        duration_ms = self.store.now() - self.start
        self.store.record_request_duration(duration_ms)
        self.store.record_endpoint_latency(_route_template(self.request), self.request.method, duration_ms)

        extra = {
            "method": self.request.method,
            "path": self.request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        if exc is not None:
            logger.error("unhandled request error", exc_info=exc, extra={**extra, "log_type": "exception"})
        else:
            logger.log(status_to_level(status_code), "request completed", extra={**extra, "log_type": "http"})


async def track_request(request: Request, call_next) -> Response:
    """Record request count, method, active user, duration and endpoint latency.

    The store is read from ``request.app.state.metrics``. Timing uses the store
    clock so durations share the timebase of every other sample, and it ends
    when the last body chunk has been sent, so streamed responses are timed
    in full.
    """
    store: MetricsStore = request.app.state.metrics
    config = request.app.state.settings
    timing = _RequestTiming(request, store)

    store.record_request_start()
    store.record_request_method(request.method)
    store.add_active_user(resolve_user_id(request, config))

    try:
        response: Response = await call_next(request)
    except Exception as exc:
        timing.finish(500, exc)
        raise

    body = response.body_iterator

    async def timed_body():
        try:
            async for chunk in body:
                yield chunk
        except Exception as exc:
            timing.finish(500, exc)
            raise
        finally:
            timing.finish(response.status_code)

    response.body_iterator = timed_body()
    return response
