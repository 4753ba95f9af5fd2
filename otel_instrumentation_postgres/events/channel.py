"""In-process publish/subscribe channel decoupling the emitter from consumers."""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from itertools import count
from typing import Any

from .models import Topic

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]

_tokens = count(1)


@dataclass(slots=True, frozen=True)
class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    topic: Topic
    handler: Handler = field(compare=False)
    token: int = field(default_factory=lambda: next(_tokens))


class EventChannel:
    """Synchronous fan-out channel.

    Handlers run inline on the publishing call stack, in subscription order.
    A handler that raises is logged and does not stop delivery to the
    handlers after it. Publishing to a topic without subscribers is a no-op.
    """

    def __init__(self, *, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._subscriptions: dict[Topic, list[Subscription]] = {}
        self._lock = threading.Lock()

    def subscribe(self, topic: Topic, handler: Handler) -> Subscription:
        subscription = Subscription(topic=Topic(topic), handler=handler)
        with self._lock:
            current = self._subscriptions.get(subscription.topic, [])
            self._subscriptions[subscription.topic] = [*current, subscription]
        self._logger.debug("subscribed to %s", subscription.topic.value, extra={"token": subscription.token})
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            current = self._subscriptions.get(subscription.topic, [])
            remaining = [item for item in current if item.token != subscription.token]
            self._subscriptions[subscription.topic] = remaining

    def subscriber_count(self, topic: Topic) -> int:
        with self._lock:
            return len(self._subscriptions.get(Topic(topic), []))

    def publish(self, topic: Topic, event: Any) -> None:
        # Lists are replaced, never mutated, so the snapshot is safe to iterate unlocked.
        with self._lock:
            subscribers = self._subscriptions.get(Topic(topic), [])
        for subscription in subscribers:
            try:
                subscription.handler(event)
            except Exception:
                self._logger.exception(
                    "event handler failed",
                    extra={"topic": subscription.topic.value, "token": subscription.token},
                )


@lru_cache
def get_event_channel() -> EventChannel:
    """Return the process-wide channel, created on first use."""
    logger.debug("creating shared event channel")
    return EventChannel()


__all__ = ["EventChannel", "Handler", "Subscription", "get_event_channel"]
