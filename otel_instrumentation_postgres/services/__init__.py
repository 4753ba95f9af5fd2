"""Query analysis, client interception and telemetry recording."""

from .emitter import (
    ConnectionRegistry,
    InstrumentedClient,
    InstrumentedConnection,
    create_otel_emitter,
    wrap,
)
from .instrumentation import (
    InstrumentationConfig,
    PostgresInstrumentation,
    default_parameter_sanitizer,
    register_db_query_receiver,
)
from .query_analysis import (
    Complexity,
    Operation,
    QueryShape,
    QueryType,
    analyze_query,
    looks_like_query,
    query_type,
)

__all__ = [
    "Complexity",
    "ConnectionRegistry",
    "InstrumentationConfig",
    "InstrumentedClient",
    "InstrumentedConnection",
    "Operation",
    "PostgresInstrumentation",
    "QueryShape",
    "QueryType",
    "analyze_query",
    "create_otel_emitter",
    "default_parameter_sanitizer",
    "looks_like_query",
    "query_type",
    "register_db_query_receiver",
    "wrap",
]
