"""Meter provider bootstrap exposing instruments in the Prometheus text format."""

from __future__ import annotations

from opentelemetry import metrics
from opentelemetry.exporter.prometheus import PrometheusMetricReader
from opentelemetry.sdk.metrics import MeterProvider
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, CollectorRegistry, generate_latest

from .resource import build_resource


def initialise_metrics(*, service_name: str, service_version: str | None = None) -> MeterProvider:
    """Install a global meter provider backed by the Prometheus reader.

    The reader registers itself with the default ``prometheus_client``
    registry, so only the first call installs a provider; later calls return
    the provider already in place.
    """

    current_provider = metrics.get_meter_provider()
    if isinstance(current_provider, MeterProvider):
        return current_provider

    provider = MeterProvider(
        resource=build_resource(service_name, service_version),
        metric_readers=[PrometheusMetricReader()],
    )
    metrics.set_meter_provider(provider)
    return provider


def render_metrics(registry: CollectorRegistry | None = None) -> tuple[bytes, str]:
    """Return the current metrics payload and its content type for scraping."""
    payload = generate_latest(registry or REGISTRY)
    return payload, CONTENT_TYPE_LATEST


__all__ = ["initialise_metrics", "render_metrics"]
