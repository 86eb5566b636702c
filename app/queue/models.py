from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from .state import Priority, TicketStatus


@dataclass(slots=True)
class Ticket:
    """One registered visit request tracked through its service lifecycle."""

    id: UUID
    number: str
    name: str
    service: str
    priority: Priority
    status: TicketStatus
    created_at: datetime
    cpf: str | None = None
    observations: str | None = None
    called_at: datetime | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    attendant_name: str | None = None
    recall_count: int = 0

    @property
    def is_waiting(self) -> bool:
        return self.status is TicketStatus.WAITING

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_priority(self) -> bool:
        return self.priority.is_priority
