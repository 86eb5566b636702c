from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, Response

from app.dependencies.queue import ManagerUser, QueueEngineDep
from app.queue.errors import StorageError
from app.queue.export import export_filename, export_tickets_csv
from app.queue.stats import DateRange, range_start

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/tickets.csv", summary="Export tickets as CSV")
async def export_tickets(
    engine: QueueEngineDep,
    _: ManagerUser,
    date_range: DateRange | None = Query(default=None, alias="range"),
) -> Response:
    now = engine.now()
    since = None if date_range is None else range_start(date_range, now, engine.timezone)
    try:
        tickets = await engine.list_tickets(since=since)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    content = export_tickets_csv(tickets, engine.timezone)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={export_filename(now, engine.timezone)}"},
    )
