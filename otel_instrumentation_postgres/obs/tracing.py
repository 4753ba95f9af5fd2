"""Global tracer provider setup for processes using the instrumentation."""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)

from .resource import build_resource


def _span_processor(endpoint: str | None) -> SpanProcessor:
    if endpoint:
        return BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
    return SimpleSpanProcessor(ConsoleSpanExporter())


def _installed_provider(service_name: str) -> TracerProvider | None:
    current = trace.get_tracer_provider()
    if isinstance(current, TracerProvider) and current.resource.attributes.get(SERVICE_NAME) == service_name:
        return current
    return None


def initialise_tracing(
    *,
    service_name: str,
    service_version: str | None = None,
    endpoint: str | None = None,
    instrument_logging: bool = True,
) -> TracerProvider:
    """Install the global tracer provider query spans are recorded on.

    Calling it again for the same service returns the provider already in
    place. With ``instrument_logging`` the trace and span ids are injected
    into log records, so the emitter's debug logs line up with its spans.
    """

    existing = _installed_provider(service_name)
    if existing is not None:
        return existing

    provider = TracerProvider(resource=build_resource(service_name, service_version))
    provider.add_span_processor(_span_processor(endpoint))
    trace.set_tracer_provider(provider)
    if instrument_logging:
        LoggingInstrumentor().instrument(set_logging_format=True)
    return provider


__all__ = ["initialise_tracing"]
