from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Awaitable, Callable, Collection
from uuid import UUID, uuid4

from opentelemetry import trace

from app.metrics import MetricsRegistry, metrics_registry
from app.metrics.base import track_duration
from app.metrics.definitions import (
    CALL_NEXT_DURATION,
    CALL_RACES,
    TICKETS_CALLED,
    TICKETS_REGISTERED,
    TRANSITIONS,
)

from .errors import (
    CallRaceError,
    InvalidTransitionError,
    StorageError,
    TicketNotFoundError,
    TicketNumberConflictError,
)
from .models import Ticket
from .numbering import format_ticket_number, start_of_day
from .ordering import next_in_line, sort_waiting
from .state import Priority, TicketStateMachine, TicketStatus
from .store import TicketStore

logger = logging.getLogger(__name__)
_tracer = trace.get_tracer(__name__)

Clock = Callable[[], datetime]
Sleeper = Callable[[float], Awaitable[None]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_text(value: str | None, field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValueError(f"{field} must not be empty")
    return cleaned


def _optional_text(value: str | None) -> str | None:
    cleaned = (value or "").strip()
    return cleaned or None


def _not_before(moment: datetime, *earlier: datetime | None) -> datetime:
    """Keep lifecycle timestamps non-decreasing even if the clock steps back."""

    previous = [value for value in earlier if value is not None]
    return max([moment, *previous])


class QueueEngine:
    """Owns ticket records: numbering, selection and status transitions.

    The engine is the only writer of ticket state. It keeps no lock of its
    own; every transition is one conditional write against the store, guarded
    by the status observed just before writing.
    """

    def __init__(
        self,
        store: TicketStore,
        *,
        tz: tzinfo = timezone.utc,
        clock: Clock = utcnow,
        call_next_retries: int = 1,
        call_retry_delay: float = 0.2,
        number_retries: int = 3,
        metrics: MetricsRegistry | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._tz = tz
        self._clock = clock
        self._call_next_retries = max(0, call_next_retries)
        self._call_retry_delay = max(0.0, call_retry_delay)
        self._number_retries = max(0, number_retries)
        self._metrics = metrics or metrics_registry
        self._sleep = sleep

    @property
    def store(self) -> TicketStore:
        return self._store

    @property
    def timezone(self) -> tzinfo:
        return self._tz

    def now(self) -> datetime:
        return self._clock()

    def today_start(self) -> datetime:
        return start_of_day(self._clock(), self._tz)

    async def register(
        self,
        *,
        name: str,
        service: str,
        priority: Priority = Priority.NORMAL,
        cpf: str | None = None,
        observations: str | None = None,
    ) -> Ticket:
        name = _require_text(name, "name")
        service = _require_text(service, "service")

        with _tracer.start_as_current_span("queue.register") as span:
            span.set_attribute("queue.service", service)
            for attempt in range(self._number_retries + 1):
                now = self._clock()
                day_start = start_of_day(now, self._tz)
                sequence = await self._store.count_created_since(day_start) + 1
                ticket = Ticket(
                    id=uuid4(),
                    number=format_ticket_number(service, sequence),
                    name=name,
                    cpf=_optional_text(cpf),
                    service=service,
                    priority=priority,
                    status=TicketStateMachine.initial_state(),
                    created_at=now,
                    observations=_optional_text(observations),
                )
                try:
                    created = await self._store.insert(ticket, service_day=day_start.date(), sequence=sequence)
                except TicketNumberConflictError:
                    logger.warning(
                        "Ticket number %s was taken concurrently (attempt %d)", ticket.number, attempt + 1
                    )
                    continue

                span.set_attribute("queue.ticket_number", created.number)
                self._metrics.counter(TICKETS_REGISTERED, label_names=("service",)).inc(
                    labels={"service": service}
                )
                logger.info(
                    "Registered ticket %s for %s (priority=%s)", created.number, service, priority.value
                )
                return created

        raise StorageError(f"Could not allocate a ticket number after {self._number_retries + 1} attempts")

    async def call_next(self, attendant_name: str, ticket_id: UUID | None = None) -> Ticket | None:
        """Move the next waiting ticket (or ``ticket_id``) to calling.

        Losing the race for a ticket to another attendant is retried against
        the refreshed waiting list; ``None`` means nothing is waiting.
        """

        attendant_name = _require_text(attendant_name, "attendant_name")
        duration = self._metrics.distribution(CALL_NEXT_DURATION)

        with _tracer.start_as_current_span("queue.call_next") as span, track_duration(duration):
            span.set_attribute("queue.attendant", attendant_name)
            target_id = ticket_id
            for attempt in range(self._call_next_retries + 1):
                if attempt:
                    await self._sleep(self._call_retry_delay * attempt)

                candidate = await self._select_candidate(target_id)
                if candidate is None:
                    logger.debug("No waiting tickets for %s", attendant_name)
                    return None

                called = await self._store.update(
                    candidate.id,
                    {
                        "status": TicketStatus.CALLING,
                        "called_at": self._clock(),
                        "attendant_name": attendant_name,
                        "recall_count": candidate.recall_count + 1,
                    },
                    expected_status=TicketStatus.WAITING,
                )
                if called is not None:
                    span.set_attribute("queue.ticket_number", called.number)
                    self._metrics.counter(TICKETS_CALLED).inc()
                    self._record_transition(TicketStatus.CALLING)
                    logger.info("Ticket %s called by %s", called.number, attendant_name)
                    return called

                self._metrics.counter(CALL_RACES).inc()
                logger.info(
                    "Ticket %s was called by another attendant before %s, retrying",
                    candidate.number,
                    attendant_name,
                )
                target_id = None

        raise CallRaceError(
            f"Lost {self._call_next_retries + 1} consecutive races while calling the next ticket"
        )

    async def start_service(self, ticket_id: UUID) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        self._assert_transition(ticket, TicketStatus.IN_PROGRESS)
        started_at = _not_before(self._clock(), ticket.called_at)
        return await self._write(
            ticket,
            {"status": TicketStatus.IN_PROGRESS, "started_at": started_at},
        )

    async def finish(self, ticket_id: UUID) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        self._assert_transition(ticket, TicketStatus.FINISHED)
        finished_at = _not_before(self._clock(), ticket.called_at, ticket.started_at)
        changes: dict[str, Any] = {"status": TicketStatus.FINISHED, "finished_at": finished_at}
        if ticket.started_at is None:
            # finished straight from calling
            changes["started_at"] = finished_at
        return await self._write(ticket, changes)

    async def recall(self, ticket_id: UUID) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        if not TicketStateMachine.can_recall(ticket.status):
            raise InvalidTransitionError(
                f"Ticket {ticket.number} cannot be recalled while {ticket.status.value}"
            )
        return await self._write(
            ticket,
            {
                "called_at": _not_before(self._clock(), ticket.called_at),
                "recall_count": ticket.recall_count + 1,
            },
        )

    async def mark_no_show(self, ticket_id: UUID) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        self._assert_transition(ticket, TicketStatus.NO_SHOW)
        return await self._write(
            ticket,
            {"status": TicketStatus.NO_SHOW, "finished_at": _not_before(self._clock(), ticket.called_at)},
        )

    async def cancel(self, ticket_id: UUID) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        self._assert_transition(ticket, TicketStatus.CANCELED)
        return await self._write(
            ticket,
            {"status": TicketStatus.CANCELED, "finished_at": _not_before(self._clock(), ticket.created_at)},
        )

    async def takeover(self, ticket_id: UUID, new_attendant_name: str) -> Ticket:
        new_attendant_name = _require_text(new_attendant_name, "attendant_name")
        ticket = await self.get_ticket(ticket_id)
        if not TicketStateMachine.can_reassign(ticket.status):
            raise InvalidTransitionError(
                f"Ticket {ticket.number} cannot be taken over while {ticket.status.value}"
            )
        updated = await self._write(ticket, {"attendant_name": new_attendant_name})
        logger.info(
            "Ticket %s taken over by %s (was %s)", ticket.number, new_attendant_name, ticket.attendant_name
        )
        return updated

    async def get_ticket(self, ticket_id: UUID) -> Ticket:
        ticket = await self._store.get(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def list_tickets(
        self,
        *,
        since: datetime | None = None,
        statuses: Collection[TicketStatus] | None = None,
    ) -> list[Ticket]:
        return await self._store.list_tickets(since=since, statuses=statuses)

    async def waiting_queue(self) -> list[Ticket]:
        waiting = await self._store.list_tickets(statuses={TicketStatus.WAITING})
        return sort_waiting(waiting)

    async def _select_candidate(self, ticket_id: UUID | None) -> Ticket | None:
        if ticket_id is not None:
            ticket = await self.get_ticket(ticket_id)
            self._assert_transition(ticket, TicketStatus.CALLING)
            return ticket
        waiting = await self._store.list_tickets(statuses={TicketStatus.WAITING})
        return next_in_line(waiting)

    @staticmethod
    def _assert_transition(ticket: Ticket, target: TicketStatus) -> None:
        if not TicketStateMachine.can_transition(ticket.status, target):
            raise InvalidTransitionError(
                f"Cannot move ticket {ticket.number} from {ticket.status.value} to {target.value}"
            )

    async def _write(self, ticket: Ticket, changes: dict[str, Any]) -> Ticket:
        updated = await self._store.update(ticket.id, changes, expected_status=ticket.status)
        if updated is None:
            current = await self._store.get(ticket.id)
            if current is None:
                raise TicketNotFoundError(f"Ticket {ticket.id} not found")
            raise InvalidTransitionError(
                f"Ticket {ticket.number} changed from {ticket.status.value} to {current.status.value} concurrently"
            )

        if updated.status is not ticket.status:
            self._record_transition(updated.status)
            logger.info(
                "Ticket %s moved %s -> %s", updated.number, ticket.status.value, updated.status.value
            )
        return updated

    def _record_transition(self, status: TicketStatus) -> None:
        self._metrics.counter(TRANSITIONS, label_names=("status",)).inc(labels={"status": status.value})
