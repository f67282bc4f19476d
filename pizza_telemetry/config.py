"""Pizza telemetry configuration loaded from environment variables."""

from __future__ import annotations

import json
from pydantic_settings import BaseSettings
from pydantic import Field, AliasChoices


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    cors_origins: str = Field(default='["http://localhost:3000"]', alias="CORS_ORIGINS")
    app_env: str = Field(default="development", alias="APP_ENV")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Identity (bearer JWT, used to attribute requests to active users)
    jwt_secret: str = Field(default="change-me-in-production-pizza-telemetry", alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")

    # Metrics export (disabled unless both URL and API key are set)
    metrics_url: str = Field(default="", alias="METRICS_URL")
    metrics_api_key: str = Field(default="", alias="METRICS_API_KEY")
    metrics_user_id: str = Field(default="", alias="METRICS_USER_ID")
    metrics_source: str = Field(default="jwt-pizza-service", alias="METRICS_SOURCE")
    metrics_export_interval_seconds: float = Field(
        default=30,
        gt=0,
        validation_alias=AliasChoices("METRICS_EXPORT_INTERVAL_SECONDS", "METRICS_EXPORT_INTERVAL"),
    )
    metrics_export_timeout_seconds: float = Field(default=10, gt=0, alias="METRICS_EXPORT_TIMEOUT_SECONDS")

    # Log shipping to Loki (disabled unless both URL and API key are set)
    logging_url: str = Field(default="", alias="LOGGING_URL")
    logging_api_key: str = Field(default="", alias="LOGGING_API_KEY")
    logging_user_id: str = Field(default="", alias="LOGGING_USER_ID")
    logging_source: str = Field(default="jwt-pizza-service", alias="LOGGING_SOURCE")

    # In-process aggregation
    window_maintenance_interval_seconds: float = Field(
        default=10,
        gt=0,
        validation_alias=AliasChoices("WINDOW_MAINTENANCE_INTERVAL_SECONDS", "WINDOW_MAINTENANCE_INTERVAL"),
    )
    series_capacity: int = Field(default=1000, gt=0, alias="METRICS_SERIES_CAPACITY")
    endpoint_series_capacity: int = Field(default=100, gt=0, alias="METRICS_ENDPOINT_SERIES_CAPACITY")
    enable_background_tasks: bool = Field(default=True, alias="ENABLE_BACKGROUND_TASKS")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in {"production", "prod"}

    @property
    def export_enabled(self) -> bool:
        return bool(self.metrics_url and self.metrics_api_key)

    @property
    def logging_enabled(self) -> bool:
        return bool(self.logging_url and self.logging_api_key)

    @property
    def cors_origins_list(self) -> list[str]:
        raw = (self.cors_origins or "").strip()
        if not raw:
            return []

        # Supports JSON list format and comma-separated format.
        if raw.startswith("["):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, list):
                    return [str(origin).strip() for origin in parsed if str(origin).strip()]
            except json.JSONDecodeError:
                pass

        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore", "populate_by_name": True}


settings = Settings()
