"""Pizza telemetry — FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pizza_telemetry.api.metrics import router as metrics_router
from pizza_telemetry.api.middleware import track_request
from pizza_telemetry.config import Settings, settings as default_settings
from pizza_telemetry.logging_config import setup_logging, start_loki_shipping
from pizza_telemetry.observability.metrics import MetricsStore
from pizza_telemetry.workers.exporter import MetricsExporter
from pizza_telemetry.workers.maintainer import WindowMaintainer

logger = logging.getLogger("pizza_telemetry")

VERSION = "0.1.0"


def _startup_checks(config: Settings) -> None:
    """Log warnings for misconfigured or missing settings."""
    if config.jwt_secret == "change-me-in-production-pizza-telemetry":
        msg = "JWT_SECRET is using the default value — set a strong secret for production"
        logger.warning(f"⚠  {msg}")
        if config.is_production:
            raise RuntimeError("Startup validation failed: " + msg)

    if config.export_enabled:
        auth_style = "user:key" if config.metrics_user_id else "key"
        logger.info(f"✓ Metrics export to {config.metrics_url} every {config.metrics_export_interval_seconds}s ({auth_style} bearer)")
    else:
        logger.info("○ METRICS_URL / METRICS_API_KEY not set — metrics are aggregated in-process only")

    if config.logging_enabled:
        logger.info(f"✓ Shipping logs to {config.logging_url} as {config.logging_source}")
    else:
        logger.info("○ LOGGING_URL / LOGGING_API_KEY not set — logs go to stdout only")


def build_store(config: Settings) -> MetricsStore:
    return MetricsStore(
        series_capacity=config.series_capacity,
        endpoint_series_capacity=config.endpoint_series_capacity,
    )


def build_workers(
    config: Settings,
    store: MetricsStore,
    export_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> tuple[WindowMaintainer, MetricsExporter]:
    maintainer = WindowMaintainer(store, interval=config.window_maintenance_interval_seconds)
    exporter = MetricsExporter(
        store,
        url=config.metrics_url,
        api_key=config.metrics_api_key,
        user_id=config.metrics_user_id,
        source=config.metrics_source,
        interval=config.metrics_export_interval_seconds,
        timeout=config.metrics_export_timeout_seconds,
        transport=export_transport,
    )
    return maintainer, exporter


def create_app(
    config: Optional[Settings] = None,
    store: Optional[MetricsStore] = None,
    export_transport: Optional[httpx.AsyncBaseTransport] = None,
    log_transport: Optional[httpx.BaseTransport] = None,
) -> FastAPI:
    """Build the application around one explicitly owned metrics store.

    The transports replace the network for the metrics push and log shipping.
    """
    config = config or default_settings
    store = store or build_store(config)
    maintainer, exporter = build_workers(config, store, export_transport)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle."""
        setup_logging(config.log_level)
        log_shipping = start_loki_shipping(
            config.logging_url,
            config.logging_user_id,
            config.logging_api_key,
            config.logging_source,
            transport=log_transport,
        )
        app.state.log_shipping = log_shipping
        try:
            _startup_checks(config)
        except RuntimeError:
            if log_shipping:
                log_shipping.stop()
            raise

        if config.enable_background_tasks:
            await maintainer.start()
            await exporter.start()
        logger.info("✦ Pizza telemetry started")

        yield

        await exporter.stop()
        await maintainer.stop()
        logger.info("✦ Pizza telemetry shutting down")
        if log_shipping:
            log_shipping.stop()

    app = FastAPI(
        title="Pizza Telemetry",
        description="In-process metrics aggregation and OTLP export for the pizza service",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.metrics = store
    app.state.maintainer = maintainer
    app.state.exporter = exporter
    app.state.log_shipping = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.middleware("http")(track_request)

    app.include_router(metrics_router)

    @app.get("/")
    async def root():
        return JSONResponse({"message": "welcome to JWT Pizza telemetry", "version": VERSION})

    @app.get("/api/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "pizza-telemetry",
            "version": VERSION,
            "window_maintainer_active": maintainer.running,
            "exporter_active": exporter.running,
        }

    return app


app = create_app()
