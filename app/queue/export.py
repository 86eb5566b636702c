"""Delimited tabular report of tickets."""

from __future__ import annotations

import csv
import io
from datetime import datetime, tzinfo
from typing import Iterable

from .models import Ticket

EXPORT_COLUMNS = (
    "number",
    "name",
    "cpf",
    "service",
    "priority",
    "status",
    "created_at",
    "called_at",
    "started_at",
    "finished_at",
    "attendant_name",
    "observations",
)

DATETIME_FORMAT = "%d/%m/%Y %H:%M"


def format_local(moment: datetime | None, tz: tzinfo) -> str:
    if moment is None:
        return ""
    return moment.astimezone(tz).strftime(DATETIME_FORMAT)


def ticket_row(ticket: Ticket, tz: tzinfo) -> list[str]:
    return [
        ticket.number,
        ticket.name,
        ticket.cpf or "",
        ticket.service,
        ticket.priority.value,
        ticket.status.value,
        format_local(ticket.created_at, tz),
        format_local(ticket.called_at, tz),
        format_local(ticket.started_at, tz),
        format_local(ticket.finished_at, tz),
        ticket.attendant_name or "",
        ticket.observations or "",
    ]


def export_tickets_csv(tickets: Iterable[Ticket], tz: tzinfo, *, delimiter: str = ",") -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for ticket in tickets:
        writer.writerow(ticket_row(ticket, tz))
    return buffer.getvalue()


def export_filename(moment: datetime, tz: tzinfo) -> str:
    return f"relatorio_atendimentos_{moment.astimezone(tz).date().isoformat()}.csv"
