"""Queue engine: ticket numbering, selection and lifecycle."""

from .display import DisplayBoard, DisplaySnapshot
from .errors import (
    CallRaceError,
    InvalidTransitionError,
    QueueError,
    StorageError,
    TicketNotFoundError,
    TicketNumberConflictError,
)
from .events import ChangeFeed, ChangeType, TicketChangeEvent
from .models import Ticket
from .service import QueueEngine
from .state import Priority, TicketStateMachine, TicketStatus
from .store import InMemoryTicketStore, TicketStore
from .view import QueueView

__all__ = [
    "CallRaceError",
    "ChangeFeed",
    "ChangeType",
    "DisplayBoard",
    "DisplaySnapshot",
    "InMemoryTicketStore",
    "InvalidTransitionError",
    "Priority",
    "QueueEngine",
    "QueueError",
    "QueueView",
    "StorageError",
    "Ticket",
    "TicketChangeEvent",
    "TicketNotFoundError",
    "TicketNumberConflictError",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
]
