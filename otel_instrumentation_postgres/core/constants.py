"""Attribute, metric and event names shared by the emitter and the instrumentation."""

from __future__ import annotations

TRACER_NAME = "postgres-query"
TRACER_VERSION = "1.0.0"
INSTRUMENTATION_NAME = "otel-instrumentation-postgres"

# Semantic convention attributes
ATTR_SERVICE_NAME = "service.name"
ATTR_SERVER_ADDRESS = "server.address"
ATTR_SERVER_PORT = "server.port"
ATTR_DB_SYSTEM_NAME = "db.system.name"
ATTR_DB_NAMESPACE = "db.namespace"
ATTR_DB_QUERY_TEXT = "db.query.text"
ATTR_DB_OPERATION_NAME = "db.operation.name"
ATTR_DB_COLLECTION_NAME = "db.collection.name"
ATTR_ERROR_TYPE = "error.type"

DB_SYSTEM_POSTGRESQL = "postgresql"
UNKNOWN_TABLE = "unknown"
OTHER_ERROR_TYPE = "_OTHER"

# Attributes outside the semantic conventions
ATTR_DB_PARAMETER_COUNT = "db.parameter_count"
ATTR_DB_DURATION_MS = "db.duration_ms"
ATTR_DB_DURATION_SECONDS = "db.duration_seconds"
ATTR_DB_QUERY_HAS_WHERE = "db.query.has_where"
ATTR_DB_QUERY_HAS_JOIN = "db.query.has_join"
ATTR_DB_QUERY_HAS_ORDER_BY = "db.query.has_order_by"
ATTR_DB_QUERY_HAS_LIMIT = "db.query.has_limit"
ATTR_DB_QUERY_COMPLEXITY = "db.query.complexity"
ATTR_DB_QUERY_TYPE = "db.query.type"
ATTR_DB_QUERY_PARAMETER_PREFIX = "db.query.parameter."
ATTR_DB_RESULT_ROW_COUNT = "db.result.row_count"

# Metric instruments
METRIC_OPERATION_DURATION = "db.client.operation.duration"
METRIC_REQUESTS = "db.client.requests"
METRIC_ERRORS = "db.client.errors"
METRIC_CONNECTIONS = "db.client.connections"
METRIC_CONNECTION_DURATION = "db.client.connections.duration"

DEFAULT_HISTOGRAM_BUCKETS: tuple[float, ...] = (
    0.001,
    0.01,
    0.1,
    0.5,
    1,
    2,
    5,
    10,
    30,
    60,
    120,
    300,
    600,
)
