"""Event payloads exchanged between the client emitter and the instrumentation."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Topic(str, Enum):
    """Channel topics carried by the event channel."""

    QUERY = "db:query"
    CONNECTION = "db:connection"


@dataclass(slots=True, frozen=True)
class Result:
    """Successful settlement of a query invocation."""

    value: Any


@dataclass(slots=True, frozen=True)
class Failure:
    """Failed settlement of a query invocation."""

    error: Any


Outcome = Result | Failure


@dataclass(slots=True, frozen=True)
class QueryEvent:
    """One attempted query invocation, published once when it settles."""

    statement: str
    parameters: tuple[Any, ...]
    outcome: Outcome
    duration_ms: float
    database_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.outcome, (Result, Failure)):
            msg = f"outcome must be Result or Failure, got {type(self.outcome).__name__}"
            raise TypeError(msg)
        if self.duration_ms < 0:
            msg = "duration_ms must not be negative"
            raise ValueError(msg)

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Result)

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000


class ConnectionEventKind(str, Enum):
    CONNECT = "connect"
    DISCONNECT = "disconnect"


@dataclass(slots=True, frozen=True)
class ConnectionEvent:
    """Reservation lifecycle change of a pooled connection.

    ``timestamp`` is a :func:`time.monotonic` reading in seconds, so only
    differences between two events are meaningful.
    """

    kind: ConnectionEventKind
    connection_id: str
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def connect(cls, connection_id: str) -> "ConnectionEvent":
        return cls(kind=ConnectionEventKind.CONNECT, connection_id=connection_id)

    @classmethod
    def disconnect(cls, connection_id: str) -> "ConnectionEvent":
        return cls(kind=ConnectionEventKind.DISCONNECT, connection_id=connection_id)


__all__ = [
    "ConnectionEvent",
    "ConnectionEventKind",
    "Failure",
    "Outcome",
    "QueryEvent",
    "Result",
    "Topic",
]
