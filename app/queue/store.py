"""Persistence boundary for ticket records."""

from __future__ import annotations

from dataclasses import fields, replace
from datetime import date, datetime
from typing import Any, Collection, Mapping, Protocol
from uuid import UUID

from .errors import TicketNumberConflictError
from .events import ChangeFeed, ChangeType, TicketChangeEvent
from .models import Ticket
from .state import TicketStatus

IMMUTABLE_FIELDS = frozenset({"id", "number", "created_at", "priority"})
MUTABLE_FIELDS = frozenset(field.name for field in fields(Ticket)) - IMMUTABLE_FIELDS


def validate_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update ticket fields: {', '.join(sorted(unknown))}")


class TicketStore(Protocol):
    """Durable ticket storage with a change feed.

    ``update`` is a conditional write: when ``expected_status`` is given the
    change only applies if the stored ticket still has that status, and
    ``None`` is returned when nothing matched.
    """

    feed: ChangeFeed

    async def insert(self, ticket: Ticket, *, service_day: date, sequence: int) -> Ticket:
        ...

    async def get(self, ticket_id: UUID) -> Ticket | None:
        ...

    async def update(
        self,
        ticket_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TicketStatus | None = None,
    ) -> Ticket | None:
        ...

    async def count_created_since(self, since: datetime) -> int:
        ...

    async def list_tickets(
        self,
        *,
        since: datetime | None = None,
        statuses: Collection[TicketStatus] | None = None,
    ) -> list[Ticket]:
        ...


class InMemoryTicketStore:
    """Process local store. Each method runs without awaiting, so checks and
    writes are atomic with respect to other coroutines."""

    def __init__(self, feed: ChangeFeed | None = None) -> None:
        self.feed = feed or ChangeFeed()
        self._tickets: dict[UUID, Ticket] = {}
        self._sequences: set[tuple[date, int]] = set()

    async def insert(self, ticket: Ticket, *, service_day: date, sequence: int) -> Ticket:
        key = (service_day, sequence)
        if key in self._sequences:
            raise TicketNumberConflictError(f"Sequence {sequence} already used on {service_day.isoformat()}")
        if ticket.id in self._tickets:
            raise TicketNumberConflictError(f"Ticket {ticket.id} already exists")
        stored = replace(ticket)
        self._sequences.add(key)
        self._tickets[stored.id] = stored
        self.feed.publish(TicketChangeEvent(type=ChangeType.INSERTED, ticket=replace(stored)))
        return replace(stored)

    async def get(self, ticket_id: UUID) -> Ticket | None:
        ticket = self._tickets.get(ticket_id)
        return None if ticket is None else replace(ticket)

    async def update(
        self,
        ticket_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TicketStatus | None = None,
    ) -> Ticket | None:
        validate_changes(changes)
        current = self._tickets.get(ticket_id)
        if current is None:
            return None
        if expected_status is not None and current.status is not expected_status:
            return None
        updated = replace(current, **changes)
        self._tickets[ticket_id] = updated
        self.feed.publish(TicketChangeEvent(type=ChangeType.UPDATED, ticket=replace(updated)))
        return replace(updated)

    async def count_created_since(self, since: datetime) -> int:
        return sum(1 for ticket in self._tickets.values() if ticket.created_at >= since)

    async def list_tickets(
        self,
        *,
        since: datetime | None = None,
        statuses: Collection[TicketStatus] | None = None,
    ) -> list[Ticket]:
        selected = [
            replace(ticket)
            for ticket in self._tickets.values()
            if (since is None or ticket.created_at >= since)
            and (statuses is None or ticket.status in statuses)
        ]
        return sorted(selected, key=lambda ticket: ticket.created_at)
