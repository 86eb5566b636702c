from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.queue.numbering import (
    format_ticket_number,
    local_day,
    resolve_timezone,
    start_of_day,
    ticket_prefix,
    ticket_sequence,
)


def test_format_ticket_number_pads_sequence():
    assert format_ticket_number("Primeira vez", 1) == "P-001"
    assert format_ticket_number("inclusão", 42) == "I-042"
    assert format_ticket_number("Alteração", 1234) == "A-1234"


def test_prefix_collisions_are_allowed():
    # Different services may share a letter; the sequence keeps numbers unique.
    assert ticket_prefix("Atualização") == ticket_prefix("Alteração") == "A"


@pytest.mark.parametrize("service", ["", "   "])
def test_empty_service_is_rejected(service):
    with pytest.raises(ValueError):
        ticket_prefix(service)


def test_sequence_must_be_positive():
    with pytest.raises(ValueError):
        format_ticket_number("Primeira vez", 0)


def test_ticket_sequence_reads_the_numeric_part():
    assert ticket_sequence("A-002") == 2
    assert ticket_sequence("P-1234") == 1234
    with pytest.raises(ValueError):
        ticket_sequence("P001")


def test_start_of_day_uses_local_midnight():
    tz = ZoneInfo("America/Fortaleza")
    # 01:30 UTC is still the previous day in Fortaleza (UTC-3)
    moment = datetime(2026, 3, 2, 1, 30, tzinfo=timezone.utc)

    assert local_day(moment, tz).isoformat() == "2026-03-01"
    start = start_of_day(moment, tz)
    assert start.astimezone(timezone.utc) == datetime(2026, 3, 1, 3, 0, tzinfo=timezone.utc)


def test_resolve_timezone_defaults_to_utc():
    assert resolve_timezone(None).utcoffset(datetime(2026, 1, 1)).total_seconds() == 0
