from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from app.api.routes.tickets import TicketResponse, _to_response
from app.dependencies.queue import AgencySettingsDep, DisplayBoardDep, QueueEngineDep, QueueViewDep
from app.queue import QueueEngine
from app.response import ChangeStreamer

router = APIRouter(prefix="/display", tags=["display"])


class DisplayResponse(BaseModel):
    agency_name: str
    current: TicketResponse | None
    history: list[TicketResponse]


@router.get("", response_model=DisplayResponse, summary="Ticket being announced and recent calls")
async def display_board(
    view: QueueViewDep,
    board: DisplayBoardDep,
    agency: AgencySettingsDep,
) -> DisplayResponse:
    snapshot = board.snapshot(view.tickets())
    settings = await agency.load()
    return DisplayResponse(
        agency_name=settings.agency_name,
        current=None if snapshot.current is None else _to_response(snapshot.current),
        history=[_to_response(ticket) for ticket in snapshot.history],
    )


@router.get(
    "/events",
    response_class=StreamingResponse,
    summary="Stream ticket changes via Server-Sent Events",
)
async def display_events(engine: QueueEngineDep) -> StreamingResponse:
    streamer = ChangeStreamer(engine.store.feed.subscribe())
    return StreamingResponse(streamer.iter_sse(), media_type="text/event-stream")


@router.websocket("/ws")
async def display_websocket(websocket: WebSocket) -> None:
    engine: QueueEngine | None = getattr(websocket.app.state, "queue_engine", None)
    if engine is None:
        await websocket.close(code=1013)
        return

    await websocket.accept()
    streamer = ChangeStreamer(engine.store.feed.subscribe())
    try:
        await streamer.stream_websocket(websocket)
    except WebSocketDisconnect:  # pragma: no cover - connection closed by client
        return
