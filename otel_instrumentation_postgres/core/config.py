"""Configuration management for the PostgreSQL instrumentation."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_HISTOGRAM_BUCKETS


class Settings(BaseSettings):
    """Environment driven settings, using libpq and OpenTelemetry variable names."""

    service_name: str | None = Field(
        default=None,
        description="Service name attached to spans and metrics.",
        alias="OTEL_SERVICE_NAME",
    )
    service_version: str | None = Field(
        default=None,
        description="Version recorded on the telemetry resource.",
        alias="DB_TELEMETRY_SERVICE_VERSION",
    )
    server_address: str | None = Field(
        default=None,
        description="Database host reported as server.address.",
        alias="PGHOST",
    )
    server_port: int | None = Field(
        default=None,
        description="Database port reported as server.port.",
        alias="PGPORT",
    )
    database_name: str | None = Field(
        default=None,
        description="Default database name when a query event carries none.",
        alias="PGDATABASE",
    )

    enable_histogram: bool = Field(default=True, alias="DB_TELEMETRY_ENABLE_HISTOGRAM")
    histogram_buckets: list[float] = Field(
        default_factory=lambda: list(DEFAULT_HISTOGRAM_BUCKETS),
        description="Explicit bucket boundaries in seconds.",
        alias="DB_TELEMETRY_HISTOGRAM_BUCKETS",
    )
    collect_query_parameters: bool = Field(default=False, alias="DB_TELEMETRY_COLLECT_PARAMETERS")

    enable_tracing: bool = Field(default=False, alias="DB_TELEMETRY_ENABLE_TRACING")
    enable_metrics: bool = Field(default=False, alias="DB_TELEMETRY_ENABLE_METRICS")
    otel_exporter_endpoint: str | None = Field(default=None, alias="OTEL_EXPORTER_OTLP_ENDPOINT")
    logging_config_path: Path | None = Field(default=None, alias="DB_TELEMETRY_LOGGING_CONFIG")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    @field_validator("histogram_buckets")
    @classmethod
    def _buckets_must_increase(cls, value: list[float]) -> list[float]:
        if any(later <= earlier for earlier, later in zip(value, value[1:])):
            msg = "histogram buckets must be strictly increasing"
            raise ValueError(msg)
        return value


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()


__all__ = ["Settings", "get_settings"]
