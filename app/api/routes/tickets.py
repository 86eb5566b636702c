from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from app.dependencies.queue import AttendantUser, QueueEngineDep, ReceptionUser
from app.queue.errors import (
    CallRaceError,
    InvalidTransitionError,
    QueueError,
    StorageError,
    TicketNotFoundError,
)
from app.queue.models import Ticket
from app.queue.state import Priority, TicketStatus
from app.queue.stats import DateRange, range_start

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    service: str = Field(..., min_length=1, max_length=120)
    priority: Priority = Priority.NORMAL
    cpf: str | None = Field(default=None, max_length=20)
    observations: str | None = Field(default=None, max_length=2000)


class CallNextRequest(BaseModel):
    ticket_id: UUID | None = None


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    number: str
    name: str
    cpf: str | None
    service: str
    priority: Priority
    status: TicketStatus
    observations: str | None
    created_at: datetime
    called_at: datetime | None
    started_at: datetime | None
    finished_at: datetime | None
    attendant_name: str | None
    recall_count: int


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _http_error(exc: QueueError) -> HTTPException:
    if isinstance(exc, TicketNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, CallRaceError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def register_ticket(
    payload: TicketCreateRequest,
    engine: QueueEngineDep,
    _: ReceptionUser,
) -> TicketResponse:
    try:
        ticket = await engine.register(
            name=payload.name,
            service=payload.service,
            priority=payload.priority,
            cpf=payload.cpf,
            observations=payload.observations,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    engine: QueueEngineDep,
    _: ReceptionUser,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
    date_range: DateRange | None = Query(default=None, alias="range"),
) -> list[TicketResponse]:
    since = None if date_range is None else range_start(date_range, engine.now(), engine.timezone)
    statuses = None if status_filter is None else {status_filter}
    try:
        tickets = await engine.list_tickets(since=since, statuses=statuses)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return [_to_response(ticket) for ticket in tickets]


@router.get("/waiting", response_model=list[TicketResponse])
async def waiting_queue(engine: QueueEngineDep, _: AttendantUser) -> list[TicketResponse]:
    try:
        tickets = await engine.waiting_queue()
    except QueueError as exc:
        raise _http_error(exc) from exc
    return [_to_response(ticket) for ticket in tickets]


@router.post(
    "/call-next",
    response_model=TicketResponse,
    responses={status.HTTP_204_NO_CONTENT: {"description": "Nobody is waiting"}},
)
async def call_next(
    engine: QueueEngineDep,
    user: AttendantUser,
    payload: CallNextRequest | None = None,
) -> TicketResponse | Response:
    ticket_id = None if payload is None else payload.ticket_id
    try:
        ticket = await engine.call_next(user.display_name, ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    if ticket is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return _to_response(ticket)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: UUID, engine: QueueEngineDep, _: ReceptionUser) -> TicketResponse:
    try:
        ticket = await engine.get_ticket(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/start", response_model=TicketResponse)
async def start_service(ticket_id: UUID, engine: QueueEngineDep, _: AttendantUser) -> TicketResponse:
    try:
        ticket = await engine.start_service(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/finish", response_model=TicketResponse)
async def finish(ticket_id: UUID, engine: QueueEngineDep, _: AttendantUser) -> TicketResponse:
    try:
        ticket = await engine.finish(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/recall", response_model=TicketResponse)
async def recall(ticket_id: UUID, engine: QueueEngineDep, _: AttendantUser) -> TicketResponse:
    try:
        ticket = await engine.recall(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/no-show", response_model=TicketResponse)
async def mark_no_show(ticket_id: UUID, engine: QueueEngineDep, _: AttendantUser) -> TicketResponse:
    try:
        ticket = await engine.mark_no_show(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel(ticket_id: UUID, engine: QueueEngineDep, _: ReceptionUser) -> TicketResponse:
    try:
        ticket = await engine.cancel(ticket_id)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)


@router.post("/{ticket_id}/takeover", response_model=TicketResponse)
async def takeover(ticket_id: UUID, engine: QueueEngineDep, user: AttendantUser) -> TicketResponse:
    try:
        ticket = await engine.takeover(ticket_id, user.display_name)
    except QueueError as exc:
        raise _http_error(exc) from exc
    return _to_response(ticket)
