from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request

from app.agency import AgencySettingsStore
from app.core.config import Settings, get_settings
from app.dependencies.auth import Role, User, role_required
from app.queue import DisplayBoard, QueueEngine, QueueView

require_admin = role_required(Role.ADMIN)
require_manager = role_required(Role.MANAGER)
require_attendant = role_required(Role.ATTENDANT)
require_reception = role_required(Role.RECEPTION)

AdminUser = Annotated[User, Depends(require_admin)]
ManagerUser = Annotated[User, Depends(require_manager)]
AttendantUser = Annotated[User, Depends(require_attendant)]
ReceptionUser = Annotated[User, Depends(require_reception)]


def _from_state(request: Request, name: str, label: str) -> Any:
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{label} is not configured")
    return value


async def get_queue_engine(request: Request) -> QueueEngine:
    return _from_state(request, "queue_engine", "Queue engine")


async def get_queue_view(request: Request) -> QueueView:
    return _from_state(request, "queue_view", "Queue view")


async def get_display_board(request: Request) -> DisplayBoard:
    return _from_state(request, "display_board", "Display board")


async def get_agency_settings_store(request: Request) -> AgencySettingsStore:
    return _from_state(request, "agency_settings_store", "Agency settings")


QueueEngineDep = Annotated[QueueEngine, Depends(get_queue_engine)]
QueueViewDep = Annotated[QueueView, Depends(get_queue_view)]
DisplayBoardDep = Annotated[DisplayBoard, Depends(get_display_board)]
AgencySettingsDep = Annotated[AgencySettingsStore, Depends(get_agency_settings_store)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
