from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4
from zoneinfo import ZoneInfo

from app.queue import Ticket
from app.queue.state import Priority, TicketStatus

FORTALEZA = ZoneInfo("America/Fortaleza")
# 09:00 local time in Fortaleza (UTC-3)
MORNING = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = MORNING) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


async def no_sleep(_: float) -> None:
    return None


def make_ticket(
    *,
    number: str = "P-001",
    service: str = "Primeira vez",
    priority: Priority = Priority.NORMAL,
    status: TicketStatus = TicketStatus.WAITING,
    created_at: datetime | None = None,
    name: str = "Ana",
    **extra,
) -> Ticket:
    return Ticket(
        id=uuid4(),
        number=number,
        name=name,
        service=service,
        priority=priority,
        status=status,
        created_at=created_at or MORNING,
        **extra,
    )
