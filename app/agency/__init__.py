"""Agency level settings shown on every screen."""

from .settings import AgencySettings, AgencySettingsStore, InMemoryAgencySettingsStore, PostgresAgencySettingsStore

__all__ = [
    "AgencySettings",
    "AgencySettingsStore",
    "InMemoryAgencySettingsStore",
    "PostgresAgencySettingsStore",
]
