from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.queue.errors import StorageError
from packages.db.models import AgencySettingsTable

logger = logging.getLogger(__name__)

_SETTINGS_ROW_ID = 1


@dataclass(slots=True)
class AgencySettings:
    agency_name: str


class AgencySettingsStore(Protocol):
    async def load(self) -> AgencySettings:
        ...

    async def save(self, settings: AgencySettings) -> AgencySettings:
        ...


def _validated(settings: AgencySettings) -> AgencySettings:
    name = settings.agency_name.strip()
    if not name:
        raise ValueError("agency_name must not be empty")
    return replace(settings, agency_name=name)


class InMemoryAgencySettingsStore:
    def __init__(self, default: AgencySettings) -> None:
        self._current = replace(default)

    async def load(self) -> AgencySettings:
        return replace(self._current)

    async def save(self, settings: AgencySettings) -> AgencySettings:
        self._current = _validated(settings)
        return replace(self._current)


class PostgresAgencySettingsStore:
    """Keeps the settings in the single ``agency_settings`` row."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], *, default: AgencySettings) -> None:
        self._session_factory = session_factory
        self._default = default

    async def load(self) -> AgencySettings:
        try:
            async with self._session_factory() as session:
                row = await session.get(AgencySettingsTable, _SETTINGS_ROW_ID)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load agency settings: {exc}") from exc
        if row is None:
            return replace(self._default)
        return AgencySettings(agency_name=row.agency_name)

    async def save(self, settings: AgencySettings) -> AgencySettings:
        settings = _validated(settings)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(AgencySettingsTable, _SETTINGS_ROW_ID)
                    if row is None:
                        row = AgencySettingsTable(id=_SETTINGS_ROW_ID, agency_name=settings.agency_name)
                        session.add(row)
                    row.agency_name = settings.agency_name
                    row.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to save agency settings: {exc}") from exc
        logger.info("Agency name set to %r", settings.agency_name)
        return settings
