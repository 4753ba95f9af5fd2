"""One-call setup wiring settings, providers and the instrumentation."""
from __future__ import annotations

import logging
from typing import Any

from otel_instrumentation_postgres.core.config import Settings, get_settings
from otel_instrumentation_postgres.core.logging import configure_logging
from otel_instrumentation_postgres.events import EventChannel
from otel_instrumentation_postgres.obs import initialise_metrics, initialise_tracing
from otel_instrumentation_postgres.services import InstrumentationConfig, PostgresInstrumentation

logger = logging.getLogger(__name__)

_DEFAULT_SERVICE_NAME = "postgres-client"


def instrument(
    settings: Settings | None = None,
    *,
    channel: EventChannel | None = None,
    **overrides: Any,
) -> PostgresInstrumentation:
    """Install global providers when enabled in settings and start recording queries.

    ``overrides`` are applied on top of the values read from ``settings``,
    typically hooks or a custom parameter sanitizer.
    """

    settings = settings or get_settings()
    if settings.logging_config_path is not None:
        configure_logging(settings.logging_config_path)
    service_name = settings.service_name or _DEFAULT_SERVICE_NAME
    if settings.enable_tracing:
        initialise_tracing(
            service_name=service_name,
            service_version=settings.service_version,
            endpoint=settings.otel_exporter_endpoint,
        )
    if settings.enable_metrics:
        initialise_metrics(service_name=service_name, service_version=settings.service_version)

    config = InstrumentationConfig.from_settings(settings, **overrides)
    instrumentation = PostgresInstrumentation(config, channel=channel)
    instrumentation.enable()
    logger.info(
        "postgres instrumentation installed",
        extra={"tracing": settings.enable_tracing, "metrics": settings.enable_metrics},
    )
    return instrumentation


__all__ = ["instrument"]
