from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
import sys
from threading import Lock
from typing import Any

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from otel_instrumentation_postgres.events import EventChannel, Topic


class QueryFailed(Exception):
    """Error raised by the fake clients for statements containing ``fail``."""


class FakeConnection:
    """Reserved connection stub recording the statements it receives."""

    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows
        self.statements: list[tuple[str, Any]] = []
        self.released = False

    def query(self, statement: str, params: Any = None) -> list[dict[str, Any]]:
        self.statements.append((statement, params))
        if "fail" in statement:
            raise QueryFailed(f"cannot run {statement!r}")
        return self._rows

    def ping(self) -> str:
        return "pong"

    def release(self) -> None:
        self.released = True


class FakeClient:
    """Synchronous pooled client stub."""

    Error = QueryFailed

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows if rows is not None else [{"id": 1}, {"id": 2}]
        self.options = {"database": "testdb"}
        self.reserved: list[FakeConnection] = []
        self.closed = False

    def __call__(self, statement: str, params: Any = None) -> list[dict[str, Any]]:
        return self.query(statement, params)

    def query(self, statement: str, params: Any = None) -> list[dict[str, Any]]:
        if "fail" in statement:
            raise QueryFailed(f"cannot run {statement!r}")
        return self.rows

    def reserve(self) -> FakeConnection:
        connection = FakeConnection(self.rows)
        self.reserved.append(connection)
        return connection

    def end(self) -> None:
        self.closed = True


class AsyncFakeConnection:
    def __init__(self, rows: list[dict[str, Any]]) -> None:
        self._rows = rows
        self.released = False

    async def query(self, statement: str, *params: Any) -> list[dict[str, Any]]:
        if "fail" in statement:
            raise QueryFailed(f"cannot run {statement!r}")
        return self._rows

    async def release(self) -> None:
        self.released = True


class AsyncFakeClient:
    """Asynchronous client stub in the style of asyncpg/postgres.js."""

    Error = QueryFailed

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows if rows is not None else [{"id": 1}]

    async def query(self, statement: str, *params: Any) -> list[dict[str, Any]]:
        if "fail" in statement:
            raise QueryFailed(f"cannot run {statement!r}")
        return self.rows

    async def reserve(self) -> AsyncFakeConnection:
        return AsyncFakeConnection(self.rows)

    async def end(self) -> None:
        return None


class EventRecorder:
    """Subscribes to both topics and keeps every event in publish order."""

    def __init__(self, channel: EventChannel) -> None:
        self.events: list[Any] = []
        self._lock = Lock()
        channel.subscribe(Topic.QUERY, self._record)
        channel.subscribe(Topic.CONNECTION, self._record)

    def _record(self, event: Any) -> None:
        with self._lock:
            self.events.append(event)

    def of_type(self, kind: type) -> list[Any]:
        return [event for event in self.events if isinstance(event, kind)]


def collect_metrics(reader: InMemoryMetricReader) -> dict[str, list[Any]]:
    """Flatten the reader's current data into ``{metric name: data points}``."""
    points: dict[str, list[Any]] = {}
    data = reader.get_metrics_data()
    if data is None:
        return points
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                points.setdefault(metric.name, []).extend(metric.data.data_points)
    return points


@pytest.fixture()
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture()
def recorder(channel: EventChannel) -> EventRecorder:
    return EventRecorder(channel)


@pytest.fixture()
def span_exporter() -> Iterator[InMemorySpanExporter]:
    exporter = InMemorySpanExporter()
    yield exporter
    exporter.clear()


@pytest.fixture()
def tracer_provider(span_exporter: InMemorySpanExporter) -> TracerProvider:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider


@pytest.fixture()
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture()
def meter_provider(metric_reader: InMemoryMetricReader) -> Iterator[MeterProvider]:
    provider = MeterProvider(metric_readers=[metric_reader])
    yield provider
    provider.shutdown()


@pytest.fixture()
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture()
def async_fake_client() -> AsyncFakeClient:
    return AsyncFakeClient()


@pytest.fixture()
def read_metrics(metric_reader: InMemoryMetricReader) -> Callable[[], dict[str, list[Any]]]:
    return lambda: collect_metrics(metric_reader)
