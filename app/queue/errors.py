"""Error taxonomy shared by the queue engine and its stores."""

from __future__ import annotations


class QueueError(RuntimeError):
    """Base error for queue engine issues."""


class StorageError(QueueError):
    """Raised when the ticket store is unreachable or rejects a write.

    The operation must not be assumed to have applied.
    """


class TicketNumberConflictError(StorageError):
    """Raised when a ticket number was already taken for the same day."""


class TicketNotFoundError(QueueError):
    """Raised when a ticket could not be located."""


class InvalidTransitionError(QueueError):
    """Raised when attempting a status change from an incompatible state."""


class CallRaceError(QueueError):
    """Raised when another attendant called the selected ticket first."""
