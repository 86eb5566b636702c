from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import asyncpg

from app.queue.errors import StorageError
from app.queue.events import ChangeType, TicketChangeEvent
from app.queue.store import TicketStore

logger = logging.getLogger(__name__)


def asyncpg_dsn(dsn: str) -> str:
    """Strip a SQLAlchemy driver suffix so asyncpg accepts the DSN."""

    scheme, sep, rest = dsn.partition("://")
    if sep and "+" in scheme:
        return f"{scheme.split('+', 1)[0]}://{rest}"
    return dsn


def sqlalchemy_dsn(dsn: str) -> str:
    """Ensure the SQLAlchemy DSN uses the asyncpg driver."""

    if dsn.startswith("postgresql+asyncpg://"):
        return dsn
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://") :]
    return dsn


@dataclass(slots=True)
class PostgresConnectionTester:
    """Utility providing explicit connection testing to PostgreSQL."""

    dsn: str
    _pool: asyncpg.Pool | None = None

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=asyncpg_dsn(self.dsn), min_size=1, max_size=1)
        return self._pool

    async def test_connection(self) -> bool:
        pool = await self.get_pool()
        async with pool.acquire() as connection:
            await connection.execute("SELECT 1")
        return True

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None


@dataclass(slots=True)
class PostgresChangeListener:
    """Relay ``pg_notify`` ticket changes into the store's local feed.

    Notifications carry only the change type and ticket id. They are queued
    and resolved one at a time against ``store`` so rows reach the feed in
    commit order.
    """

    dsn: str
    store: TicketStore
    channel: str = "ticket_changes"
    _connection: Any = field(default=None, repr=False)
    _pending: asyncio.Queue | None = field(default=None, repr=False)
    _worker: asyncio.Task | None = field(default=None, repr=False)

    async def start(self) -> None:
        if self._connection is not None:
            return
        self._pending = asyncio.Queue()
        self._worker = asyncio.create_task(self._relay(self._pending))
        self._connection = await asyncpg.connect(dsn=asyncpg_dsn(self.dsn))
        await self._connection.add_listener(self.channel, self._on_notification)
        logger.info("Listening for ticket changes on channel %s", self.channel)

    async def stop(self) -> None:
        try:
            if self._connection is not None:
                try:
                    await self._connection.remove_listener(self.channel, self._on_notification)
                finally:
                    await self._connection.close()
                    self._connection = None
        finally:
            if self._worker is not None:
                self._worker.cancel()
                try:
                    await self._worker
                except asyncio.CancelledError:
                    pass
                self._worker = None
            self._pending = None

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        notice = decode_notification(payload)
        if notice is None:
            logger.warning("Ignoring malformed notification on %s from pid %s", channel, pid)
            return
        if self._pending is not None:
            self._pending.put_nowait(notice)

    async def _relay(self, pending: asyncio.Queue) -> None:
        while True:
            change, ticket_id = await pending.get()
            try:
                ticket = await self.store.get(ticket_id)
            except StorageError:
                logger.exception("Could not load ticket %s for %s notification", ticket_id, change.value)
                continue
            if ticket is None:
                logger.warning("Ticket %s from %s notification no longer exists", ticket_id, change.value)
                continue
            self.store.feed.publish(TicketChangeEvent(type=change, ticket=ticket))


def decode_notification(payload: str) -> tuple[ChangeType, UUID] | None:
    try:
        data = json.loads(payload)
        return ChangeType(data["type"]), UUID(str(data["id"]))
    except (ValueError, KeyError, TypeError):
        return None
