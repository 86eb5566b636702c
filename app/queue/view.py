"""Local mirror of the ticket store kept current by the change feed."""

from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from .errors import StorageError
from .events import ChangeSubscription, ChangeType, TicketChangeEvent
from .models import Ticket
from .ordering import arrival_key
from .store import TicketStore

logger = logging.getLogger(__name__)


class QueueView:
    """Eventually consistent copy of every ticket, ordered by arrival."""

    def __init__(self, store: TicketStore) -> None:
        self._store = store
        self._tickets: dict[UUID, Ticket] = {}
        self._subscription: ChangeSubscription | None = None
        self._task: asyncio.Task[None] | None = None

    async def load(self) -> None:
        tickets = await self._store.list_tickets()
        self._tickets = {ticket.id: ticket for ticket in tickets}
        logger.info("Queue view loaded %d tickets", len(self._tickets))

    def apply(self, event: TicketChangeEvent) -> None:
        if event.type is ChangeType.DELETED:
            self._tickets.pop(event.ticket.id, None)
        else:
            self._tickets[event.ticket.id] = event.ticket

    def tickets(self) -> list[Ticket]:
        return sorted(self._tickets.values(), key=arrival_key)

    def get(self, ticket_id: UUID) -> Ticket | None:
        return self._tickets.get(ticket_id)

    async def start(self) -> None:
        """Subscribe before loading so no change between the two is missed."""

        if self._task is not None:
            return
        self._subscription = self._store.feed.subscribe()
        await self.load()
        self._task = asyncio.create_task(self._consume(self._subscription))

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def _consume(self, subscription: ChangeSubscription) -> None:
        async for event in subscription:
            if subscription.overflowed:
                # Events were dropped, so the buffered ones no longer add up to the store.
                logger.warning("Queue view fell behind the change feed; reloading from the store")
                subscription.reset()
                try:
                    await self.load()
                except StorageError:
                    logger.exception("Queue view reload failed; retrying on the next change")
                    subscription.overflowed = True
                continue
            self.apply(event)
