from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Supported states for a ticket's lifecycle."""

    WAITING = "waiting"
    CALLING = "calling"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELED = "canceled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


TERMINAL_STATUSES = frozenset({TicketStatus.FINISHED, TicketStatus.CANCELED, TicketStatus.NO_SHOW})
ACTIVE_STATUSES = frozenset({TicketStatus.CALLING, TicketStatus.IN_PROGRESS})


class Priority(str, Enum):
    """Visitor priority. Every class other than NORMAL preempts the normal queue."""

    NORMAL = "normal"
    ELDERLY = "elderly"
    PREGNANT = "pregnant"
    DISABLED = "disabled"

    @property
    def is_priority(self) -> bool:
        return self is not Priority.NORMAL


class TicketStateMachine:
    """Validate ticket lifecycle transitions."""

    _TRANSITIONS: dict[TicketStatus, set[TicketStatus]] = {
        TicketStatus.WAITING: {TicketStatus.CALLING, TicketStatus.CANCELED},
        TicketStatus.CALLING: {TicketStatus.IN_PROGRESS, TicketStatus.FINISHED, TicketStatus.NO_SHOW},
        TicketStatus.IN_PROGRESS: {TicketStatus.FINISHED},
        TicketStatus.FINISHED: set(),
        TicketStatus.CANCELED: set(),
        TicketStatus.NO_SHOW: set(),
    }

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return TicketStatus.WAITING

    @classmethod
    def can_transition(cls, current: TicketStatus, new: TicketStatus) -> bool:
        return new in cls._TRANSITIONS.get(current, set())

    @classmethod
    def can_recall(cls, current: TicketStatus) -> bool:
        return current is TicketStatus.CALLING

    @classmethod
    def can_reassign(cls, current: TicketStatus) -> bool:
        return current.is_active
