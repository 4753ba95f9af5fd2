"""Turns query and connection events into OpenTelemetry spans and metrics."""
from __future__ import annotations

import logging
import re
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

from opentelemetry import metrics, trace
from opentelemetry.metrics import Counter, Histogram, Meter, MeterProvider
from opentelemetry.trace import Span, SpanKind, Status, StatusCode, TracerProvider

from otel_instrumentation_postgres.core import constants as const
from otel_instrumentation_postgres.core.config import Settings
from otel_instrumentation_postgres.events import (
    ConnectionEvent,
    ConnectionEventKind,
    EventChannel,
    Failure,
    QueryEvent,
    Subscription,
    Topic,
    get_event_channel,
)

from .query_analysis import QueryShape, analyze_query, sanitize_statement

ParameterSanitizer = Callable[[Any], str]
SpanHook = Callable[[Span, QueryEvent], None]
ResponseHook = Callable[[Span, Any], None]

_MAX_PARAMETER_LENGTH = 100
_SENSITIVE_PATTERN = re.compile(r"password|token|secret", re.IGNORECASE)


def default_parameter_sanitizer(value: Any) -> str:
    """Truncate long strings and redact ones that look like credentials."""
    if isinstance(value, str):
        if len(value) > _MAX_PARAMETER_LENGTH:
            return f"{value[:_MAX_PARAMETER_LENGTH]}..."
        if _SENSITIVE_PATTERN.search(value):
            return "[REDACTED]"
    return str(value)


def error_type(error: Any) -> str:
    if isinstance(error, BaseException):
        return type(error).__name__
    return const.OTHER_ERROR_TYPE


@dataclass(slots=True)
class InstrumentationConfig:
    """Options for :class:`PostgresInstrumentation`.

    Hooks are optional and are each invoked inside their own error guard:
    ``before_span`` once the span has started, ``response_hook`` with the
    value of a successful query and ``after_span`` just before the span ends.
    """

    service_name: str | None = None
    enable_histogram: bool = True
    histogram_buckets: Sequence[float] = const.DEFAULT_HISTOGRAM_BUCKETS
    collect_query_parameters: bool = False
    server_address: str | None = None
    server_port: int | None = None
    database_name: str | None = None
    parameter_sanitizer: ParameterSanitizer = field(default=default_parameter_sanitizer)
    before_span: SpanHook | None = None
    after_span: SpanHook | None = None
    response_hook: ResponseHook | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "InstrumentationConfig":
        options: dict[str, Any] = {
            "service_name": settings.service_name,
            "enable_histogram": settings.enable_histogram,
            "histogram_buckets": tuple(settings.histogram_buckets),
            "collect_query_parameters": settings.collect_query_parameters,
            "server_address": settings.server_address,
            "server_port": settings.server_port,
            "database_name": settings.database_name,
        }
        options.update(overrides)
        return cls(**options)


class PostgresInstrumentation:
    """Subscribes to the event channel while enabled and records telemetry."""

    def __init__(
        self,
        config: InstrumentationConfig | None = None,
        *,
        channel: EventChannel | None = None,
        tracer_provider: TracerProvider | None = None,
        meter_provider: MeterProvider | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config or InstrumentationConfig()
        self._channel = channel or get_event_channel()
        self._logger = logger or logging.getLogger(__name__)
        self._tracer = trace.get_tracer(
            const.TRACER_NAME, const.TRACER_VERSION, tracer_provider=tracer_provider
        )
        self._meter = metrics.get_meter(
            const.INSTRUMENTATION_NAME, const.TRACER_VERSION, meter_provider=meter_provider
        )
        self._subscriptions: tuple[Subscription, ...] = ()
        self._connection_starts: dict[str, float] = {}
        self._lock = threading.Lock()

        self._duration_histogram: Histogram | None = None
        self._request_counter: Counter | None = None
        self._error_counter: Counter | None = None
        self._connection_counter: Counter | None = None
        self._connection_duration_histogram: Histogram | None = None
        self._initialise_metrics(self._meter)
        self._logger.info("postgres instrumentation created")

    @property
    def config(self) -> InstrumentationConfig:
        return self._config

    @property
    def is_enabled(self) -> bool:
        return bool(self._subscriptions)

    def _initialise_metrics(self, meter: Meter) -> None:
        buckets = list(self._config.histogram_buckets)
        if self._config.enable_histogram:
            self._duration_histogram = self._create(
                meter.create_histogram,
                const.METRIC_OPERATION_DURATION,
                unit="s",
                description="Duration of PostgreSQL database queries in seconds",
                explicit_bucket_boundaries_advisory=buckets,
            )
        self._request_counter = self._create(
            meter.create_counter,
            const.METRIC_REQUESTS,
            description="Number of PostgreSQL database queries executed",
        )
        self._error_counter = self._create(
            meter.create_counter,
            const.METRIC_ERRORS,
            description="Number of PostgreSQL database query errors",
        )
        self._connection_counter = self._create(
            meter.create_counter,
            const.METRIC_CONNECTIONS,
            description="Number of PostgreSQL database connections established",
        )
        self._connection_duration_histogram = self._create(
            meter.create_histogram,
            const.METRIC_CONNECTION_DURATION,
            unit="s",
            description="Duration of PostgreSQL database connections in seconds",
            explicit_bucket_boundaries_advisory=buckets,
        )

    def _create(self, factory: Callable[..., Any], name: str, **options: Any) -> Any:
        try:
            return factory(name, **options)
        except Exception:
            self._logger.exception("failed to create metric instrument", extra={"instrument": name})
            return None

    def enable(self) -> None:
        with self._lock:
            if self._subscriptions:
                self._detach()
            self._subscriptions = (
                self._channel.subscribe(Topic.QUERY, self.handle_query_event),
                self._channel.subscribe(Topic.CONNECTION, self.handle_connection_event),
            )
        self._logger.info("postgres instrumentation enabled")

    def disable(self) -> None:
        with self._lock:
            if not self._subscriptions:
                return
            self._detach()
        self._logger.info("postgres instrumentation disabled")

    def _detach(self) -> None:
        for subscription in self._subscriptions:
            self._channel.unsubscribe(subscription)
        self._subscriptions = ()

    def handle_query_event(self, event: QueryEvent) -> None:
        self._logger.debug("processing query event", extra={"duration_ms": event.duration_ms})
        shape = analyze_query(event.statement)
        try:
            attributes = self._span_attributes(event, shape)
        except Exception:
            self._logger.exception("failed to build span attributes")
            attributes = {const.ATTR_DB_SYSTEM_NAME: const.DB_SYSTEM_POSTGRESQL}

        end_time = time.time_ns()
        span = self._tracer.start_span(
            shape.operation.value,
            kind=SpanKind.CLIENT,
            attributes=attributes,
            start_time=end_time - int(event.duration_ms * 1_000_000),
        )
        try:
            self._run_hook("before_span", self._config.before_span, span, event)
            if self._config.collect_query_parameters and event.parameters:
                self._add_query_parameters(span, event.parameters)
            self._record_metrics(event, shape)
            if isinstance(event.outcome, Failure):
                self._mark_failed(span, event.outcome.error)
            else:
                self._mark_succeeded(span, event.outcome.value)
            self._run_hook("after_span", self._config.after_span, span, event)
        except Exception:
            self._logger.exception("failed to process query event")
        finally:
            span.end(end_time=end_time)

    def _span_attributes(self, event: QueryEvent, shape: QueryShape) -> dict[str, Any]:
        attributes: dict[str, Any] = {
            const.ATTR_SERVICE_NAME: self._config.service_name,
            const.ATTR_SERVER_ADDRESS: self._config.server_address,
            const.ATTR_SERVER_PORT: self._config.server_port,
            const.ATTR_DB_SYSTEM_NAME: const.DB_SYSTEM_POSTGRESQL,
            const.ATTR_DB_NAMESPACE: event.database_name or self._config.database_name,
            const.ATTR_DB_QUERY_TEXT: sanitize_statement(event.statement),
            const.ATTR_DB_QUERY_TYPE: shape.query_type.value,
            const.ATTR_DB_OPERATION_NAME: shape.operation.value,
            const.ATTR_DB_COLLECTION_NAME: shape.table or const.UNKNOWN_TABLE,
            const.ATTR_DB_PARAMETER_COUNT: len(event.parameters),
            const.ATTR_DB_QUERY_HAS_WHERE: shape.has_where,
            const.ATTR_DB_QUERY_HAS_JOIN: shape.has_join,
            const.ATTR_DB_QUERY_HAS_ORDER_BY: shape.has_order_by,
            const.ATTR_DB_QUERY_HAS_LIMIT: shape.has_limit,
            const.ATTR_DB_QUERY_COMPLEXITY: shape.complexity.value,
            const.ATTR_DB_DURATION_MS: float(event.duration_ms),
            const.ATTR_DB_DURATION_SECONDS: event.duration_seconds,
        }
        return {key: value for key, value in attributes.items() if value is not None}

    def _add_query_parameters(self, span: Span, parameters: Sequence[Any]) -> None:
        sanitizer = self._config.parameter_sanitizer
        for index, value in enumerate(parameters):
            try:
                sanitized = str(sanitizer(value))
            except Exception:
                self._logger.exception("parameter sanitizer failed", extra={"index": index})
                continue
            span.set_attribute(f"{const.ATTR_DB_QUERY_PARAMETER_PREFIX}{index}", sanitized)

    def _metric_attributes(self, shape: QueryShape) -> dict[str, Any]:
        attributes = {
            const.ATTR_DB_SYSTEM_NAME: const.DB_SYSTEM_POSTGRESQL,
            const.ATTR_DB_OPERATION_NAME: shape.operation.value,
            const.ATTR_DB_COLLECTION_NAME: shape.table or const.UNKNOWN_TABLE,
            const.ATTR_DB_QUERY_COMPLEXITY: shape.complexity.value,
            const.ATTR_DB_QUERY_TYPE: shape.query_type.value,
        }
        if self._config.service_name:
            attributes[const.ATTR_SERVICE_NAME] = self._config.service_name
        return attributes

    def _record_metrics(self, event: QueryEvent, shape: QueryShape) -> None:
        try:
            attributes = self._metric_attributes(shape)
            if self._duration_histogram is not None:
                self._duration_histogram.record(event.duration_seconds, attributes)
            if self._request_counter is not None:
                self._request_counter.add(1, attributes)
            if isinstance(event.outcome, Failure) and self._error_counter is not None:
                self._error_counter.add(
                    1, {**attributes, const.ATTR_ERROR_TYPE: error_type(event.outcome.error)}
                )
        except Exception:
            self._logger.exception("failed to record query metrics")

    def _mark_failed(self, span: Span, error: Any) -> None:
        span.set_status(Status(StatusCode.ERROR, str(error)))
        if isinstance(error, BaseException):
            span.record_exception(error)
        span.set_attribute(const.ATTR_ERROR_TYPE, error_type(error))
        self._logger.debug("query failed", extra={"error": str(error)})

    def _mark_succeeded(self, span: Span, value: Any) -> None:
        span.set_status(Status(StatusCode.OK))
        if isinstance(value, (list, tuple)):
            span.set_attribute(const.ATTR_DB_RESULT_ROW_COUNT, len(value))
        if value is not None:
            self._run_hook("response_hook", self._config.response_hook, span, value)

    def _run_hook(self, name: str, hook: Callable[..., None] | None, *args: Any) -> None:
        if hook is None:
            return
        try:
            hook(*args)
        except Exception:
            self._logger.exception("instrumentation hook failed", extra={"hook": name})

    def handle_connection_event(self, event: ConnectionEvent) -> None:
        self._logger.debug(
            "processing connection event",
            extra={"kind": event.kind.value, "connection_id": event.connection_id},
        )
        try:
            if event.kind is ConnectionEventKind.CONNECT:
                if self._connection_counter is not None:
                    self._connection_counter.add(1, self._connection_attributes())
                with self._lock:
                    self._connection_starts[event.connection_id] = event.timestamp
                return

            with self._lock:
                started = self._connection_starts.pop(event.connection_id, None)
            if started is None:
                self._logger.debug("disconnect without a recorded connect")
                return
            if self._connection_duration_histogram is not None:
                self._connection_duration_histogram.record(
                    max(0.0, event.timestamp - started), self._connection_attributes()
                )
        except Exception:
            self._logger.exception("failed to record connection metrics")

    def _connection_attributes(self) -> dict[str, Any]:
        attributes = {const.ATTR_DB_SYSTEM_NAME: const.DB_SYSTEM_POSTGRESQL}
        if self._config.service_name:
            attributes[const.ATTR_SERVICE_NAME] = self._config.service_name
        return attributes

    def open_connections(self) -> int:
        with self._lock:
            return len(self._connection_starts)


def register_db_query_receiver(
    *,
    channel: EventChannel | None = None,
    tracer_provider: TracerProvider | None = None,
    meter_provider: MeterProvider | None = None,
    logger: logging.Logger | None = None,
    **options: Any,
) -> PostgresInstrumentation:
    """Create an instrumentation from keyword options and enable it."""
    instrumentation = PostgresInstrumentation(
        InstrumentationConfig(**options),
        channel=channel,
        tracer_provider=tracer_provider,
        meter_provider=meter_provider,
        logger=logger,
    )
    instrumentation.enable()
    return instrumentation


__all__ = [
    "InstrumentationConfig",
    "ParameterSanitizer",
    "PostgresInstrumentation",
    "ResponseHook",
    "SpanHook",
    "default_parameter_sanitizer",
    "error_type",
    "register_db_query_receiver",
]
