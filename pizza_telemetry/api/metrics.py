"""Metrics read API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from pizza_telemetry.observability.metrics import MetricsStore

router = APIRouter(prefix="/api", tags=["metrics"])


def get_metrics_store(request: Request) -> MetricsStore:
    """Dependency returning the app's metrics store."""
    return request.app.state.metrics


@router.get("/metrics")
async def get_metrics(store: MetricsStore = Depends(get_metrics_store)):
    """Current snapshot: http, users, auth, pizza, endpoints, system."""
    return store.snapshot()
