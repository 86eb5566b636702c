from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from .models import Ticket
from .state import TicketStatus

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_HIDDEN_FROM_HISTORY = frozenset({TicketStatus.WAITING, TicketStatus.CANCELED, TicketStatus.NO_SHOW})


def _called_at(ticket: Ticket) -> datetime:
    return ticket.called_at or _EPOCH


@dataclass(slots=True)
class DisplaySnapshot:
    """What the public panel shows: the current call and the recent ones."""

    current: Ticket | None
    history: list[Ticket] = field(default_factory=list)


class DisplayBoard:
    """Select the ticket to announce and the recent call history."""

    def __init__(self, history_size: int = 5) -> None:
        self.history_size = max(0, history_size)

    def snapshot(self, tickets: Iterable[Ticket]) -> DisplaySnapshot:
        tickets = list(tickets)
        active = sorted((t for t in tickets if t.is_active), key=_called_at, reverse=True)
        current = active[0] if active else None

        history = sorted(
            (
                t
                for t in tickets
                if t.called_at is not None
                and t.status not in _HIDDEN_FROM_HISTORY
                and (current is None or t.id != current.id)
            ),
            key=_called_at,
            reverse=True,
        )
        return DisplaySnapshot(current=current, history=history[: self.history_size])
