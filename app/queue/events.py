"""Push based change notifications for ticket records."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Iterator

from .models import Ticket

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(slots=True)
class TicketChangeEvent:
    """A single change broadcast to every connected queue view."""

    type: ChangeType
    ticket: Ticket


class ChangeSubscription:
    """Buffered stream of events for one subscriber.

    When the buffer is full new events are dropped and ``overflowed`` is set;
    the consumer must then reload from the store and call ``reset``.
    """

    def __init__(self, feed: "ChangeFeed", maxsize: int) -> None:
        self._feed = feed
        self._queue: asyncio.Queue[TicketChangeEvent] = asyncio.Queue(maxsize=maxsize)
        self.overflowed = False

    def deliver(self, event: TicketChangeEvent) -> bool:
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.overflowed = True
            return False
        return True

    async def get(self) -> TicketChangeEvent:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()

    def reset(self) -> None:
        """Discard buffered events and clear the overflow flag before a reload."""

        while not self._queue.empty():
            self._queue.get_nowait()
        self.overflowed = False

    def close(self) -> None:
        self._feed.unsubscribe(self)

    def __aiter__(self) -> AsyncIterator[TicketChangeEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[TicketChangeEvent]:
        while True:
            yield await self._queue.get()


class ChangeFeed:
    """Fan out ticket changes to all subscribers of this process."""

    def __init__(self, *, buffer_size: int = 256) -> None:
        self._buffer_size = buffer_size
        self._subscribers: list[ChangeSubscription] = []

    def subscribe(self) -> ChangeSubscription:
        subscription = ChangeSubscription(self, self._buffer_size)
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: ChangeSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    @contextmanager
    def subscription(self) -> Iterator[ChangeSubscription]:
        subscription = self.subscribe()
        try:
            yield subscription
        finally:
            subscription.close()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: TicketChangeEvent) -> None:
        for subscription in list(self._subscribers):
            if not subscription.deliver(event):
                logger.warning(
                    "Dropping %s event for ticket %s: subscriber buffer is full",
                    event.type.value,
                    event.ticket.number,
                )
