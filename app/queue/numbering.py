from __future__ import annotations

from datetime import date, datetime, time, tzinfo
from zoneinfo import ZoneInfo

_SEQUENCE_WIDTH = 3


def resolve_timezone(name: str | None) -> tzinfo:
    """Return the zone used for the local day boundary."""

    return ZoneInfo(name or "UTC")


def ticket_prefix(service: str) -> str:
    cleaned = (service or "").strip()
    if not cleaned:
        raise ValueError("Service name is required to build a ticket number")
    return cleaned[0].upper()


def format_ticket_number(service: str, sequence: int) -> str:
    """Build the visitor facing code, e.g. ``P-007``."""

    if sequence < 1:
        raise ValueError(f"Ticket sequence must be positive, got {sequence}")
    return f"{ticket_prefix(service)}-{sequence:0{_SEQUENCE_WIDTH}d}"


def ticket_sequence(number: str) -> int:
    """Daily sequence encoded in a ticket code, e.g. ``7`` for ``P-007``."""

    _, sep, digits = number.rpartition("-")
    if not sep or not digits.isdigit():
        raise ValueError(f"Malformed ticket number: {number!r}")
    return int(digits)


def local_day(moment: datetime, tz: tzinfo) -> date:
    return moment.astimezone(tz).date()


def start_of_day(moment: datetime, tz: tzinfo) -> datetime:
    """Local midnight of the day containing ``moment``, as an aware datetime."""

    return datetime.combine(local_day(moment, tz), time.min, tzinfo=tz)
