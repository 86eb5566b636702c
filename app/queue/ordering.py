"""Selection policy for the waiting queue."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from .models import Ticket
from .numbering import ticket_sequence


def arrival_key(ticket: Ticket) -> tuple[datetime, int]:
    # Same-instant registrations fall back to the daily sequence, never the service prefix.
    return (ticket.created_at, ticket_sequence(ticket.number))


def sort_waiting(tickets: Iterable[Ticket]) -> list[Ticket]:
    """Return waiting tickets in call order.

    Priority tickets (elderly, pregnant, disabled) always come before normal
    ones; within each class the oldest arrival is served first.
    """

    waiting = [ticket for ticket in tickets if ticket.is_waiting]
    priority = sorted((ticket for ticket in waiting if ticket.is_priority), key=arrival_key)
    normal = sorted((ticket for ticket in waiting if not ticket.is_priority), key=arrival_key)
    return [*priority, *normal]


def next_in_line(tickets: Iterable[Ticket]) -> Ticket | None:
    ordered = sort_waiting(tickets)
    return ordered[0] if ordered else None
