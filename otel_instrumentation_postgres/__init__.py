"""OpenTelemetry instrumentation for PostgreSQL clients.

Wrap a client with :func:`wrap` so its queries are published on the event
channel, and enable a :class:`PostgresInstrumentation` to turn those events
into spans and metrics.
"""

from .bootstrap import instrument
from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .events import (
    ConnectionEvent,
    ConnectionEventKind,
    EventChannel,
    Failure,
    QueryEvent,
    Result,
    Topic,
    get_event_channel,
)
from .services import (
    InstrumentationConfig,
    InstrumentedClient,
    PostgresInstrumentation,
    QueryShape,
    analyze_query,
    create_otel_emitter,
    register_db_query_receiver,
    wrap,
)

__version__ = "0.1.0"

__all__ = [
    "ConnectionEvent",
    "ConnectionEventKind",
    "EventChannel",
    "Failure",
    "InstrumentationConfig",
    "InstrumentedClient",
    "PostgresInstrumentation",
    "QueryEvent",
    "QueryShape",
    "Result",
    "Settings",
    "Topic",
    "analyze_query",
    "configure_logging",
    "create_otel_emitter",
    "get_event_channel",
    "get_settings",
    "instrument",
    "register_db_query_receiver",
    "wrap",
]
