from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel

from app.dependencies.queue import ManagerUser, QueueEngineDep, QueueViewDep, SettingsDep
from app.queue.stats import (
    DateRange,
    HealthLevel,
    HealthThresholds,
    build_dashboard,
    summarize,
)

router = APIRouter(prefix="/stats", tags=["stats"])


class SummaryResponse(BaseModel):
    waiting: int
    in_progress: int
    finished: int
    today_total: int


class ServiceHealthResponse(BaseModel):
    service: str
    waiting: int
    active: int
    max_wait_seconds: float
    level: HealthLevel


class AttendantPerformanceResponse(BaseModel):
    attendant_name: str
    finished: int
    average_service_seconds: float


class DashboardResponse(BaseModel):
    range: DateRange
    since: datetime
    summary: SummaryResponse
    average_wait_seconds: float
    average_service_seconds: float
    priority_share: float
    health: list[ServiceHealthResponse]
    hourly: dict[int, int]
    services: dict[str, int]
    attendants: list[AttendantPerformanceResponse]


@router.get("/summary", response_model=SummaryResponse)
async def summary(view: QueueViewDep, engine: QueueEngineDep, _: ManagerUser) -> SummaryResponse:
    result = summarize(view.tickets(), now=engine.now(), tz=engine.timezone)
    return SummaryResponse(
        waiting=result.waiting,
        in_progress=result.in_progress,
        finished=result.finished,
        today_total=result.today_total,
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    view: QueueViewDep,
    engine: QueueEngineDep,
    settings: SettingsDep,
    _: ManagerUser,
    date_range: DateRange = Query(default=DateRange.TODAY, alias="range"),
) -> DashboardResponse:
    snapshot = build_dashboard(
        view.tickets(),
        now=engine.now(),
        tz=engine.timezone,
        date_range=date_range,
        services=settings.queue_services,
        thresholds=HealthThresholds.from_minutes(
            settings.queue_attention_minutes, settings.queue_critical_minutes
        ),
    )
    return DashboardResponse(
        range=snapshot.range,
        since=snapshot.since,
        summary=SummaryResponse(
            waiting=snapshot.summary.waiting,
            in_progress=snapshot.summary.in_progress,
            finished=snapshot.summary.finished,
            today_total=snapshot.summary.today_total,
        ),
        average_wait_seconds=snapshot.average_wait.total_seconds(),
        average_service_seconds=snapshot.average_service.total_seconds(),
        priority_share=snapshot.priority_share,
        health=[
            ServiceHealthResponse(
                service=row.service,
                waiting=row.waiting,
                active=row.active,
                max_wait_seconds=row.max_wait.total_seconds(),
                level=row.level,
            )
            for row in snapshot.health
        ],
        hourly=snapshot.hourly,
        services=snapshot.services,
        attendants=[
            AttendantPerformanceResponse(
                attendant_name=row.attendant_name,
                finished=row.finished,
                average_service_seconds=row.average_service.total_seconds(),
            )
            for row in snapshot.attendants
        ],
    )
