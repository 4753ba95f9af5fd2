"""Event payloads and the channel that carries them."""

from .channel import EventChannel, Handler, Subscription, get_event_channel
from .models import (
    ConnectionEvent,
    ConnectionEventKind,
    Failure,
    Outcome,
    QueryEvent,
    Result,
    Topic,
)

__all__ = [
    "ConnectionEvent",
    "ConnectionEventKind",
    "EventChannel",
    "Failure",
    "Handler",
    "Outcome",
    "QueryEvent",
    "Result",
    "Subscription",
    "Topic",
    "get_event_channel",
]
