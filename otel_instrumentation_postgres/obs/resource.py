"""Resource shared by the tracer and meter providers."""

from __future__ import annotations

from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource

from otel_instrumentation_postgres.core import constants as const

_DISTRO_NAME_ATTRIBUTE = "telemetry.distro.name"
_DISTRO_VERSION_ATTRIBUTE = "telemetry.distro.version"


def build_resource(service_name: str, service_version: str | None = None) -> Resource:
    """Describe the instrumented service and this package.

    ``Resource.create`` also merges ``OTEL_RESOURCE_ATTRIBUTES`` and the SDK
    defaults; the explicit service name wins over both.
    """

    attributes: dict[str, str] = {
        SERVICE_NAME: service_name,
        _DISTRO_NAME_ATTRIBUTE: const.INSTRUMENTATION_NAME,
        _DISTRO_VERSION_ATTRIBUTE: const.TRACER_VERSION,
    }
    if service_version:
        attributes[SERVICE_VERSION] = service_version
    return Resource.create(attributes)


__all__ = ["build_resource"]
