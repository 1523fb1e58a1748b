"""Topic-keyed publish/subscribe channel for completed fetch results."""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from seatwatch.logging_config import get_logger

LOGGER = get_logger(__name__)

_handle_ids = itertools.count(1)
_CLOSED = object()


@dataclass(eq=False)
class Subscription:
    """Handle returned by ``subscribe``; iterate it to receive payloads."""

    topic: str
    queue: asyncio.Queue = field(repr=False)
    id: int = field(default_factory=lambda: next(_handle_ids))
    active: bool = True

    def get_nowait(self) -> Any:
        return self.queue.get_nowait()

    async def __aiter__(self) -> AsyncIterator[Any]:
        while self.active:
            payload = await self.queue.get()
            if payload is _CLOSED:
                return
            yield payload

    def close(self) -> None:
        """Stop iteration, waking a consumer blocked on an empty queue."""

        self.active = False
        if self.queue.full():
            self.queue.get_nowait()
        self.queue.put_nowait(_CLOSED)


class EventBroadcaster:
    """Delivers each published payload to every current subscriber of its topic."""

    def __init__(self, *, queue_size: int = 100) -> None:
        self.queue_size = queue_size
        self._topics: dict[str, set[Subscription]] = {}

    def subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(topic=topic, queue=asyncio.Queue(maxsize=self.queue_size))
        self._topics.setdefault(topic, set()).add(subscription)
        LOGGER.debug("Subscriber %s joined topic %s", subscription.id, topic)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        if subscription.active:
            subscription.close()
        members = self._topics.get(subscription.topic)
        if not members:
            return
        members.discard(subscription)
        if not members:
            del self._topics[subscription.topic]
        LOGGER.debug("Subscriber %s left topic %s", subscription.id, subscription.topic)

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    def publish(self, topic: str, payload: Any) -> int:
        """Queue *payload* for every subscriber; return how many received it.

        A subscriber whose queue is full loses its oldest pending payload.
        """

        delivered = 0
        for subscription in list(self._topics.get(topic, ())):
            if subscription.queue.full():
                try:
                    subscription.queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                LOGGER.warning("Subscriber %s on %s is lagging; dropped oldest update", subscription.id, topic)
            subscription.queue.put_nowait(payload)
            delivered += 1
        LOGGER.debug("Published update to %s (%d subscriber(s))", topic, delivered)
        return delivered
