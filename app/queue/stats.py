"""Read-side statistics derived from the ticket set.

Everything here is a pure function of the tickets passed in and the current
time; nothing is cached or persisted.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterable, Sequence

from .models import Ticket
from .numbering import start_of_day
from .state import TicketStatus

_ZERO = timedelta(0)


class DateRange(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class HealthLevel(str, Enum):
    NORMAL = "normal"
    ATTENTION = "attention"
    CRITICAL = "critical"


@dataclass(slots=True)
class QueueSummary:
    waiting: int
    in_progress: int
    finished: int
    today_total: int


@dataclass(slots=True)
class ServiceHealth:
    service: str
    waiting: int
    active: int
    max_wait: timedelta
    level: HealthLevel


@dataclass(slots=True)
class AttendantPerformance:
    attendant_name: str
    finished: int
    average_service: timedelta


@dataclass(slots=True)
class HealthThresholds:
    attention: timedelta = timedelta(minutes=15)
    critical: timedelta = timedelta(minutes=30)

    @classmethod
    def from_minutes(cls, attention: int, critical: int) -> "HealthThresholds":
        return cls(attention=timedelta(minutes=attention), critical=timedelta(minutes=critical))

    def classify(self, max_wait: timedelta) -> HealthLevel:
        if max_wait > self.critical:
            return HealthLevel.CRITICAL
        if max_wait >= self.attention:
            return HealthLevel.ATTENTION
        return HealthLevel.NORMAL


@dataclass(slots=True)
class DashboardSnapshot:
    range: DateRange
    since: datetime
    summary: QueueSummary
    average_wait: timedelta
    average_service: timedelta
    priority_share: float
    health: list[ServiceHealth] = field(default_factory=list)
    hourly: dict[int, int] = field(default_factory=dict)
    services: dict[str, int] = field(default_factory=dict)
    attendants: list[AttendantPerformance] = field(default_factory=list)


def range_start(date_range: DateRange, now: datetime, tz: tzinfo) -> datetime:
    """First instant of ``date_range`` in local time; weeks start on Sunday."""

    today = start_of_day(now, tz)
    if date_range is DateRange.TODAY:
        return today
    if date_range is DateRange.WEEK:
        days_since_sunday = (today.weekday() + 1) % 7
        return today - timedelta(days=days_since_sunday)
    return today.replace(day=1)


def _created_since(tickets: Iterable[Ticket], since: datetime | None) -> list[Ticket]:
    return [ticket for ticket in tickets if since is None or ticket.created_at >= since]


def _mean(durations: Sequence[timedelta]) -> timedelta:
    if not durations:
        return _ZERO
    return sum(durations, _ZERO) / len(durations)


def summarize(tickets: Iterable[Ticket], *, now: datetime, tz: tzinfo) -> QueueSummary:
    tickets = list(tickets)
    today = _created_since(tickets, start_of_day(now, tz))
    return QueueSummary(
        waiting=sum(1 for ticket in tickets if ticket.is_waiting),
        in_progress=sum(1 for ticket in tickets if ticket.is_active),
        finished=sum(1 for ticket in today if ticket.status is TicketStatus.FINISHED),
        today_total=len(today),
    )


def average_wait(tickets: Iterable[Ticket], *, since: datetime | None = None) -> timedelta:
    """Mean of ``called_at - created_at`` over tickets that were called."""

    return _mean(
        [
            ticket.called_at - ticket.created_at
            for ticket in _created_since(tickets, since)
            if ticket.called_at is not None
        ]
    )


def average_service(tickets: Iterable[Ticket], *, since: datetime | None = None) -> timedelta:
    """Mean of ``finished_at - called_at`` over finished tickets."""

    return _mean(
        [
            ticket.finished_at - ticket.called_at
            for ticket in _created_since(tickets, since)
            if ticket.status is TicketStatus.FINISHED
            and ticket.finished_at is not None
            and ticket.called_at is not None
        ]
    )


def queue_health(
    tickets: Iterable[Ticket],
    *,
    now: datetime,
    services: Sequence[str] = (),
    thresholds: HealthThresholds | None = None,
) -> list[ServiceHealth]:
    """Per service load, with the age of the oldest waiting ticket."""

    thresholds = thresholds or HealthThresholds()
    waiting: dict[str, list[Ticket]] = defaultdict(list)
    active: Counter[str] = Counter()
    seen: list[str] = list(services)
    for ticket in tickets:
        if ticket.service not in seen:
            seen.append(ticket.service)
        if ticket.is_waiting:
            waiting[ticket.service].append(ticket)
        elif ticket.is_active:
            active[ticket.service] += 1

    rows: list[ServiceHealth] = []
    for service in seen:
        queued = waiting.get(service, [])
        oldest = min((ticket.created_at for ticket in queued), default=None)
        max_wait = max(now - oldest, _ZERO) if oldest is not None else _ZERO
        rows.append(
            ServiceHealth(
                service=service,
                waiting=len(queued),
                active=active[service],
                max_wait=max_wait,
                level=thresholds.classify(max_wait),
            )
        )
    return rows


def hourly_distribution(tickets: Iterable[Ticket], *, tz: tzinfo) -> dict[int, int]:
    """Registrations per local hour of day."""

    counts = Counter(ticket.created_at.astimezone(tz).hour for ticket in tickets)
    return dict(sorted(counts.items()))


def service_distribution(tickets: Iterable[Ticket]) -> dict[str, int]:
    return dict(Counter(ticket.service for ticket in tickets).most_common())


def attendant_performance(tickets: Iterable[Ticket]) -> list[AttendantPerformance]:
    """Average ``finished_at - started_at`` per attendant, slowest first."""

    durations: dict[str, list[timedelta]] = defaultdict(list)
    for ticket in tickets:
        if (
            ticket.status is TicketStatus.FINISHED
            and ticket.attendant_name
            and ticket.started_at is not None
            and ticket.finished_at is not None
        ):
            durations[ticket.attendant_name].append(ticket.finished_at - ticket.started_at)

    rows = [
        AttendantPerformance(attendant_name=name, finished=len(values), average_service=_mean(values))
        for name, values in durations.items()
    ]
    return sorted(rows, key=lambda row: row.average_service, reverse=True)


def priority_share(tickets: Iterable[Ticket]) -> float:
    """Percentage of tickets that are priority class and already left the queue."""

    tickets = list(tickets)
    if not tickets:
        return 0.0
    served = sum(1 for ticket in tickets if ticket.is_priority and not ticket.is_waiting)
    return round(served * 100.0 / len(tickets), 1)


def build_dashboard(
    tickets: Iterable[Ticket],
    *,
    now: datetime,
    tz: tzinfo,
    date_range: DateRange = DateRange.TODAY,
    services: Sequence[str] = (),
    thresholds: HealthThresholds | None = None,
) -> DashboardSnapshot:
    tickets = list(tickets)
    since = range_start(date_range, now, tz)
    in_range = _created_since(tickets, since)
    return DashboardSnapshot(
        range=date_range,
        since=since,
        summary=summarize(tickets, now=now, tz=tz),
        average_wait=average_wait(in_range),
        average_service=average_service(in_range),
        priority_share=priority_share(in_range),
        health=queue_health(tickets, now=now, services=services, thresholds=thresholds),
        hourly=hourly_distribution(in_range, tz=tz),
        services=service_distribution(in_range),
        attendants=attendant_performance(in_range),
    )
