"""Client wrapper publishing query and connection events.

``wrap`` returns an adapter around an arbitrary database client handle.
The adapter is a ``wrapt.ObjectProxy``, so attribute reads and writes and
isinstance checks behave as on the handle itself. Calls whose first
positional argument is an SQL statement are timed and reported on the
event channel; everything else passes straight through. Handles obtained
through the client's reserve method are wrapped the same way and report
their reservation and release as connection events.
"""
from __future__ import annotations

import functools
import inspect
import logging
import threading
import time

from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from uuid import uuid4

import wrapt

from otel_instrumentation_postgres.events import (
    ConnectionEvent,
    EventChannel,
    Failure,
    Outcome,
    QueryEvent,
    Result,
    Topic,
    get_event_channel,
)

from .query_analysis import looks_like_query

_STATEMENT_PREVIEW_LENGTH = 100
_PARAMETER_KEYWORDS = ("params", "parameters")


class ConnectionRegistry:
    """Thread-safe mapping from reserved handle identity to connection id."""

    def __init__(self) -> None:
        self._entries: dict[int, tuple[Any, str]] = {}
        self._lock = threading.Lock()

    def register(self, handle: Any) -> str:
        connection_id = uuid4().hex
        with self._lock:
            # The handle is kept alive with its id so the identity cannot be recycled.
            self._entries[id(handle)] = (handle, connection_id)
        return connection_id

    def get(self, handle: Any) -> str | None:
        with self._lock:
            entry = self._entries.get(id(handle))
        return entry[1] if entry else None

    def pop(self, handle: Any) -> str | None:
        with self._lock:
            entry = self._entries.pop(id(handle), None)
        return entry[1] if entry else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _extract_parameters(args: tuple[Any, ...], kwargs: dict[str, Any]) -> tuple[Any, ...]:
    if len(args) > 2:
        return tuple(args[1:])
    if len(args) == 2:
        values = args[1]
    else:
        values = next((kwargs[key] for key in _PARAMETER_KEYWORDS if key in kwargs), None)
        if values is None:
            return ()
    if isinstance(values, Mapping):
        return tuple(values.values())
    if isinstance(values, (list, tuple)):
        return tuple(values)
    return (values,)


# pylint: disable=abstract-method
class InstrumentedClient(wrapt.ObjectProxy):
    """Transparent proxy reporting query-shaped invocations of the wrapped handle.

    Attribute reads and writes, ``isinstance`` checks and the context manager
    protocols go to the handle; only callables reached through the proxy are
    intercepted.
    """

    def __init__(
        self,
        handle: Any,
        *,
        channel: EventChannel | None = None,
        database_name: str | None = None,
        logger: logging.Logger | None = None,
        reserve_method: str = "reserve",
        release_method: str = "release",
        registry: ConnectionRegistry | None = None,
    ) -> None:
        wrapt.ObjectProxy.__init__(self, handle)
        self._self_channel = channel if channel is not None else get_event_channel()
        self._self_database_name = database_name
        self._self_logger = logger or logging.getLogger(__name__)
        self._self_reserve_method = reserve_method
        self._self_release_method = release_method
        self._self_registry = registry if registry is not None else ConnectionRegistry()

    @property
    def wrapped(self) -> Any:
        return self.__wrapped__

    @property
    def registry(self) -> ConnectionRegistry:
        return self._self_registry

    def __getattr__(self, name: str) -> Any:
        # Missing proxy state means __init__ has not run.
        if name.startswith("_self_"):
            raise AttributeError(name)
        value = getattr(self.__wrapped__, name)
        # Exception and other classes are returned as-is.
        if not callable(value) or isinstance(value, type):
            return value
        if name == self._self_reserve_method:
            return self._wrap_reserve(value)
        return self._wrap_callable(value)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        handle = self.__wrapped__
        if not callable(handle):
            msg = f"{type(handle).__name__!r} object is not callable"
            raise TypeError(msg)
        return self._invoke(handle, args, kwargs)

    def __enter__(self) -> Any:
        entered = self.__wrapped__.__enter__()
        return self if entered is self.__wrapped__ else entered

    def __exit__(self, *exc_info: Any) -> Any:
        return self.__wrapped__.__exit__(*exc_info)

    async def __aenter__(self) -> Any:
        entered = await self.__wrapped__.__aenter__()
        return self if entered is self.__wrapped__ else entered

    async def __aexit__(self, *exc_info: Any) -> Any:
        return await self.__wrapped__.__aexit__(*exc_info)

    def _wrap_callable(self, func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return self._invoke(func, args, kwargs)

        return wrapper

    def _invoke(self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        if not args or not looks_like_query(args[0]):
            return func(*args, **kwargs)
        return self._run_query(func, args, kwargs)

    def _run_query(self, func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        statement: str = args[0]
        parameters = _extract_parameters(args, kwargs)
        self._self_logger.debug(
            "intercepted query",
            extra={"statement": statement[:_STATEMENT_PREVIEW_LENGTH]},
        )
        start = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            self._publish_query(statement, parameters, Failure(exc), start)
            raise
        if inspect.isawaitable(result):
            return self._settle_query(result, statement, parameters, start)
        self._publish_query(statement, parameters, Result(result), start)
        return result

    async def _settle_query(
        self,
        pending: Awaitable[Any],
        statement: str,
        parameters: tuple[Any, ...],
        start: float,
    ) -> Any:
        try:
            value = await pending
        except Exception as exc:
            self._publish_query(statement, parameters, Failure(exc), start)
            raise
        self._publish_query(statement, parameters, Result(value), start)
        return value

    def _publish_query(
        self,
        statement: str,
        parameters: tuple[Any, ...],
        outcome: Outcome,
        start: float,
    ) -> None:
        event = QueryEvent(
            statement=statement,
            parameters=parameters,
            outcome=outcome,
            duration_ms=max(0.0, (time.perf_counter() - start) * 1000),
            database_name=self._self_database_name,
        )
        self._self_logger.debug(
            "publishing query event",
            extra={"duration_ms": round(event.duration_ms, 3), "succeeded": event.succeeded},
        )
        self._self_channel.publish(Topic.QUERY, event)

    def _wrap_reserve(self, reserve: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(reserve)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            reserved = reserve(*args, **kwargs)
            if inspect.isawaitable(reserved):
                return self._settle_reservation(reserved)
            return self._attach(reserved)

        return wrapper

    async def _settle_reservation(self, pending: Awaitable[Any]) -> Any:
        return self._attach(await pending)

    def _attach(self, reserved: Any) -> Any:
        if reserved is None:
            return reserved
        connection_id = self._self_registry.register(reserved)
        self._self_logger.debug("connection reserved", extra={"connection_id": connection_id})
        self._self_channel.publish(Topic.CONNECTION, ConnectionEvent.connect(connection_id))
        return InstrumentedConnection(
            reserved,
            channel=self._self_channel,
            database_name=self._self_database_name,
            logger=self._self_logger,
            reserve_method=self._self_reserve_method,
            release_method=self._self_release_method,
            registry=self._self_registry,
        )


class InstrumentedConnection(InstrumentedClient):
    """Reserved sub-handle; reports a disconnect once released."""

    @property
    def connection_id(self) -> str | None:
        return self._self_registry.get(self.__wrapped__)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_self_"):
            raise AttributeError(name)
        if name == self._self_release_method:
            value = getattr(self.__wrapped__, name)
            if callable(value):
                return self._wrap_release(value)
            return value
        return super().__getattr__(name)

    def _wrap_release(self, release: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(release)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            outcome = release(*args, **kwargs)
            if inspect.isawaitable(outcome):
                return self._settle_release(outcome)
            self._disconnect()
            return outcome

        return wrapper

    async def _settle_release(self, pending: Awaitable[Any]) -> Any:
        value = await pending
        self._disconnect()
        return value

    def _disconnect(self) -> None:
        connection_id = self._self_registry.pop(self.__wrapped__)
        if connection_id is None:
            self._self_logger.debug("release of an untracked connection")
            return
        self._self_logger.debug("connection released", extra={"connection_id": connection_id})
        self._self_channel.publish(Topic.CONNECTION, ConnectionEvent.disconnect(connection_id))


def wrap(
    handle: Any,
    *,
    channel: EventChannel | None = None,
    database_name: str | None = None,
    logger: logging.Logger | None = None,
    reserve_method: str = "reserve",
    release_method: str = "release",
) -> InstrumentedClient:
    """Wrap ``handle`` so its queries and reservations are published as events."""
    log = logger or logging.getLogger(__name__)
    log.info("creating event-emitting postgres client")
    return InstrumentedClient(
        handle,
        channel=channel,
        database_name=database_name,
        logger=log,
        reserve_method=reserve_method,
        release_method=release_method,
    )


create_otel_emitter = wrap


__all__ = [
    "ConnectionRegistry",
    "InstrumentedClient",
    "InstrumentedConnection",
    "create_otel_emitter",
    "wrap",
]
