from __future__ import annotations

import json
from datetime import date, datetime, timezone
from typing import Any, Collection, Mapping
from uuid import UUID

from sqlalchemy import func, insert, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from packages.db.models import TicketTable

from .errors import StorageError, TicketNumberConflictError
from .events import ChangeFeed, ChangeType, TicketChangeEvent
from .models import Ticket
from .state import Priority, TicketStatus
from .store import validate_changes

_TICKETS = TicketTable.__table__  # type: ignore[attr-defined]
_DATETIME_FIELDS = ("created_at", "called_at", "started_at", "finished_at")


class SqlTicketStore:
    """Ticket store backed by the ``tickets`` table.

    With a ``notify_channel`` every write also runs ``pg_notify`` inside its
    transaction, so all listening processes learn about it once it commits
    (``PostgresChangeListener`` loads each notified row into ``feed``).
    Without a channel the store publishes to ``feed`` itself after
    committing, which only reaches subscribers in this process.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
        feed: ChangeFeed | None = None,
        notify_channel: str | None = "ticket_changes",
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine
        self.feed = feed or ChangeFeed()
        self.notify_channel = notify_channel

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        try:
            async with self._engine.begin() as connection:
                await connection.run_sync(SQLModel.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not create ticket schema: {exc}") from exc

    async def insert(self, ticket: Ticket, *, service_day: date, sequence: int) -> Ticket:
        values = {
            **_to_columns(ticket_to_payload(ticket, serialize=False)),
            "service_day": service_day,
            "sequence": sequence,
        }
        statement = insert(_TICKETS).values(**values).returning(*_TICKETS.c)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(statement)
                    stored = row_to_ticket(result.mappings().one())
                    await self._notify(session, ChangeType.INSERTED, stored)
        except IntegrityError as exc:
            raise TicketNumberConflictError(
                f"Ticket number {ticket.number} already used on {service_day.isoformat()}"
            ) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to insert ticket {ticket.number}: {exc}") from exc
        self._publish_locally(ChangeType.INSERTED, stored)
        return stored

    async def get(self, ticket_id: UUID) -> Ticket | None:
        statement = select(_TICKETS).where(_TICKETS.c.id == str(ticket_id))
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                row = result.mappings().first()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to load ticket {ticket_id}: {exc}") from exc
        return None if row is None else row_to_ticket(row)

    async def update(
        self,
        ticket_id: UUID,
        changes: Mapping[str, Any],
        *,
        expected_status: TicketStatus | None = None,
    ) -> Ticket | None:
        validate_changes(changes)
        statement = update(_TICKETS).where(_TICKETS.c.id == str(ticket_id))
        if expected_status is not None:
            statement = statement.where(_TICKETS.c.status == expected_status.value)
        statement = statement.values(**_to_columns(changes)).returning(*_TICKETS.c)
        updated: Ticket | None = None
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(statement)
                    row = result.mappings().first()
                    if row is not None:
                        updated = row_to_ticket(row)
                        await self._notify(session, ChangeType.UPDATED, updated)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to update ticket {ticket_id}: {exc}") from exc
        if updated is not None:
            self._publish_locally(ChangeType.UPDATED, updated)
        return updated

    async def count_created_since(self, since: datetime) -> int:
        statement = (
            select(func.count()).select_from(_TICKETS).where(_TICKETS.c.created_at >= _to_utc(since))
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return int(result.scalar_one())
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to count tickets: {exc}") from exc

    async def list_tickets(
        self,
        *,
        since: datetime | None = None,
        statuses: Collection[TicketStatus] | None = None,
    ) -> list[Ticket]:
        statement = select(_TICKETS)
        if since is not None:
            statement = statement.where(_TICKETS.c.created_at >= _to_utc(since))
        if statuses is not None:
            statement = statement.where(_TICKETS.c.status.in_([status.value for status in statuses]))
        statement = statement.order_by(_TICKETS.c.created_at.asc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement)
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to list tickets: {exc}") from exc
        return [row_to_ticket(row) for row in rows]

    async def _notify(self, session: AsyncSession, change: ChangeType, ticket: Ticket) -> None:
        if self.notify_channel is None:
            return
        # NOTIFY payloads are capped at 8000 bytes, so listeners re-read the row.
        payload = json.dumps({"type": change.value, "id": str(ticket.id)})
        await session.execute(
            text("SELECT pg_notify(:channel, :payload)"),
            {"channel": self.notify_channel, "payload": payload},
        )

    def _publish_locally(self, change: ChangeType, ticket: Ticket) -> None:
        if self.notify_channel is None:
            self.feed.publish(TicketChangeEvent(type=change, ticket=ticket))


def _to_utc(moment: datetime) -> datetime:
    # SQLite drops offsets on bind, so compare in UTC everywhere.
    return moment.astimezone(timezone.utc)


def _to_columns(values: Mapping[str, Any]) -> dict[str, Any]:
    columns: dict[str, Any] = {}
    for key, value in values.items():
        if isinstance(value, (TicketStatus, Priority)):
            value = value.value
        elif isinstance(value, UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = _to_utc(value)
        columns[key] = value
    return columns


def ticket_to_payload(ticket: Ticket, *, serialize: bool = True) -> dict[str, Any]:
    """Flatten a ticket into column values; ISO strings when ``serialize``."""

    payload: dict[str, Any] = {
        "id": str(ticket.id),
        "number": ticket.number,
        "name": ticket.name,
        "cpf": ticket.cpf,
        "service": ticket.service,
        "priority": ticket.priority.value,
        "status": ticket.status.value,
        "observations": ticket.observations,
        "attendant_name": ticket.attendant_name,
        "recall_count": ticket.recall_count,
    }
    for name in _DATETIME_FIELDS:
        value = getattr(ticket, name)
        payload[name] = value.isoformat() if serialize and value is not None else value
    return payload


def row_to_ticket(row: Mapping[str, Any]) -> Ticket:
    return Ticket(
        id=_to_uuid(row["id"]),
        number=str(row["number"]),
        name=str(row["name"]),
        cpf=row.get("cpf"),
        service=str(row["service"]),
        priority=Priority(str(row["priority"])),
        status=TicketStatus(str(row["status"])),
        observations=row.get("observations"),
        attendant_name=row.get("attendant_name"),
        recall_count=int(row.get("recall_count") or 0),
        created_at=_ensure_datetime(row["created_at"]),
        called_at=_optional_datetime(row.get("called_at")),
        started_at=_optional_datetime(row.get("started_at")),
        finished_at=_optional_datetime(row.get("finished_at")),
    )


def _to_uuid(value: Any) -> UUID:
    if isinstance(value, UUID):
        return value
    return UUID(str(value))


def _ensure_datetime(value: Any) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def _optional_datetime(value: Any) -> datetime | None:
    return None if value is None else _ensure_datetime(value)
