import csv
import io
from datetime import timedelta

from app.queue.export import EXPORT_COLUMNS, export_filename, export_tickets_csv, format_local
from app.queue.state import Priority, TicketStatus

from .factories import FORTALEZA, MORNING, make_ticket


def test_export_writes_header_and_local_times():
    ticket = make_ticket(
        name='Ana "Aninha" Souza',
        priority=Priority.ELDERLY,
        status=TicketStatus.FINISHED,
        called_at=MORNING + timedelta(minutes=12),
        finished_at=MORNING + timedelta(minutes=30),
        attendant_name="Guichê 1",
        cpf="123.456.789-00",
    )

    content = export_tickets_csv([ticket], FORTALEZA)
    rows = list(csv.reader(io.StringIO(content)))

    assert rows[0] == list(EXPORT_COLUMNS)
    row = dict(zip(rows[0], rows[1]))
    assert row["name"] == 'Ana "Aninha" Souza'
    assert row["created_at"] == "02/03/2026 09:00"
    assert row["called_at"] == "02/03/2026 09:12"
    assert row["started_at"] == ""
    assert row["priority"] == "elderly"
    assert content.splitlines()[1].startswith('"P-001"')


def test_export_supports_custom_delimiter():
    content = export_tickets_csv([make_ticket()], FORTALEZA, delimiter=";")

    assert content.splitlines()[0].startswith('"number";"name"')


def test_format_local_handles_missing_values():
    assert format_local(None, FORTALEZA) == ""


def test_export_filename_uses_local_date():
    late_evening = MORNING.replace(hour=2)  # 23:00 on the previous local day

    assert export_filename(late_evening, FORTALEZA) == "relatorio_atendimentos_2026-03-01.csv"
