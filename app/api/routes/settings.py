from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.agency import AgencySettings
from app.dependencies.queue import AdminUser, AgencySettingsDep
from app.queue.errors import StorageError

router = APIRouter(prefix="/settings", tags=["settings"])


class AgencySettingsModel(BaseModel):
    agency_name: str = Field(..., min_length=1, max_length=255)


@router.get("", response_model=AgencySettingsModel)
async def get_agency_settings(store: AgencySettingsDep) -> AgencySettingsModel:
    try:
        settings = await store.load()
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return AgencySettingsModel(agency_name=settings.agency_name)


@router.put("", response_model=AgencySettingsModel)
async def update_agency_settings(
    payload: AgencySettingsModel,
    store: AgencySettingsDep,
    _: AdminUser,
) -> AgencySettingsModel:
    try:
        saved = await store.save(AgencySettings(agency_name=payload.agency_name))
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return AgencySettingsModel(agency_name=saved.agency_name)
