"""SQLModel table definitions for the queue data layer."""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Visit requests handled by the queue engine."""

    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("service_day", "sequence", name="uq_tickets_service_day_sequence"),
        Index("ix_tickets_status_created_at", "status", "created_at"),
    )

    id: str = Field(primary_key=True, index=True)
    number: str = Field(sa_column=Column(String(16), nullable=False))
    service_day: date = Field(sa_column=Column(Date, nullable=False))
    sequence: int = Field(sa_column=Column(Integer, nullable=False))
    name: str = Field(sa_column=Column(String(255), nullable=False))
    cpf: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    service: str = Field(sa_column=Column(String(120), nullable=False))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    observations: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    attendant_name: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    recall_count: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    called_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    finished_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))


class AgencySettingsTable(SQLModel, table=True):
    """Single row holding the agency display settings."""

    __tablename__ = "agency_settings"

    id: int = Field(default=1, primary_key=True)
    agency_name: str = Field(sa_column=Column(String(255), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
