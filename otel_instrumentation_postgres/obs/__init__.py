"""Observability bootstrap helpers."""

from .metrics import initialise_metrics, render_metrics
from .resource import build_resource
from .tracing import initialise_tracing

__all__ = [
    "build_resource",
    "initialise_metrics",
    "initialise_tracing",
    "render_metrics",
]
