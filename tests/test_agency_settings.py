from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.agency import AgencySettings, InMemoryAgencySettingsStore, PostgresAgencySettingsStore
from packages.db.models import AgencySettingsTable


@pytest_asyncio.fixture
async def engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.mark.asyncio
async def test_in_memory_store_returns_default_then_saved_value():
    store = InMemoryAgencySettingsStore(AgencySettings(agency_name="SEMAS"))

    assert (await store.load()).agency_name == "SEMAS"
    saved = await store.save(AgencySettings(agency_name="  CRAS Centro  "))

    assert saved.agency_name == "CRAS Centro"
    assert (await store.load()).agency_name == "CRAS Centro"


@pytest.mark.asyncio
async def test_empty_agency_name_is_rejected():
    store = InMemoryAgencySettingsStore(AgencySettings(agency_name="SEMAS"))

    with pytest.raises(ValueError):
        await store.save(AgencySettings(agency_name="   "))


@pytest.mark.asyncio
async def test_database_store_upserts_single_row(session_factory: async_sessionmaker):
    store = PostgresAgencySettingsStore(session_factory, default=AgencySettings(agency_name="SEMAS"))

    assert (await store.load()).agency_name == "SEMAS"
    await store.save(AgencySettings(agency_name="CRAS Norte"))
    await store.save(AgencySettings(agency_name="CRAS Sul"))

    assert (await store.load()).agency_name == "CRAS Sul"
    async with session_factory() as session:
        row = await session.get(AgencySettingsTable, 1)
    assert row is not None
    assert row.agency_name == "CRAS Sul"
