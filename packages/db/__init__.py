"""Database models and utilities."""

from .models import AgencySettingsTable, TicketTable

__all__ = [
    "AgencySettingsTable",
    "TicketTable",
]
