from __future__ import annotations

import asyncio
import logging

import pytest

from app.metrics import MetricsRegistry
from app.queue import ChangeFeed, ChangeType, InMemoryTicketStore, QueueEngine, QueueView, TicketChangeEvent
from app.queue.state import TicketStatus

from .factories import FORTALEZA, FakeClock, make_ticket, no_sleep


def test_feed_fans_out_to_every_subscriber():
    feed = ChangeFeed()
    first = feed.subscribe()
    second = feed.subscribe()
    event = TicketChangeEvent(type=ChangeType.INSERTED, ticket=make_ticket())

    feed.publish(event)

    assert first.pending() == 1
    assert second.pending() == 1


def test_closed_subscription_stops_receiving():
    feed = ChangeFeed()
    with feed.subscription() as subscription:
        assert feed.subscriber_count == 1
    feed.publish(TicketChangeEvent(type=ChangeType.INSERTED, ticket=make_ticket()))

    assert feed.subscriber_count == 0
    assert subscription.pending() == 0


def test_full_buffer_drops_with_warning(caplog):
    feed = ChangeFeed(buffer_size=1)
    subscription = feed.subscribe()

    with caplog.at_level(logging.WARNING, logger="app.queue.events"):
        feed.publish(TicketChangeEvent(type=ChangeType.INSERTED, ticket=make_ticket(number="P-001")))
        feed.publish(TicketChangeEvent(type=ChangeType.INSERTED, ticket=make_ticket(number="P-002")))

    assert subscription.pending() == 1
    assert subscription.overflowed
    assert "P-002" in caplog.text

    subscription.reset()
    assert subscription.pending() == 0
    assert not subscription.overflowed


@pytest.mark.asyncio
async def test_store_publishes_inserts_and_updates(store: InMemoryTicketStore, engine: QueueEngine):
    subscription = store.feed.subscribe()

    ticket = await engine.register(name="Ana", service="Primeira vez")
    await engine.call_next("Guichê 1")

    inserted = await subscription.get()
    updated = await subscription.get()
    assert inserted.type is ChangeType.INSERTED
    assert updated.type is ChangeType.UPDATED
    assert updated.ticket.id == ticket.id
    assert updated.ticket.attendant_name == "Guichê 1"


@pytest.mark.asyncio
async def test_view_loads_and_follows_changes(store: InMemoryTicketStore, engine: QueueEngine):
    existing = await engine.register(name="Ana", service="Primeira vez")
    view = QueueView(store)
    await view.start()
    try:
        assert [ticket.id for ticket in view.tickets()] == [existing.id]

        await engine.call_next("Guichê 1")
        fresh = await engine.register(name="Bia", service="Inclusão")
        for _ in range(5):
            await asyncio.sleep(0)

        assert view.get(existing.id).attendant_name == "Guichê 1"
        assert view.get(fresh.id) is not None
    finally:
        await view.stop()

    assert store.feed.subscriber_count == 0


def test_view_applies_deletions(store: InMemoryTicketStore):
    view = QueueView(store)
    ticket = make_ticket()
    view.apply(TicketChangeEvent(type=ChangeType.INSERTED, ticket=ticket))
    view.apply(TicketChangeEvent(type=ChangeType.DELETED, ticket=ticket))

    assert view.tickets() == []


@pytest.mark.asyncio
async def test_view_reloads_after_its_buffer_overflows(caplog):
    store = InMemoryTicketStore(ChangeFeed(buffer_size=8))
    engine = QueueEngine(store, tz=FORTALEZA, clock=FakeClock(), metrics=MetricsRegistry(), sleep=no_sleep)
    view = QueueView(store)
    await view.start()
    try:
        with caplog.at_level(logging.WARNING):
            for index in range(20):
                await engine.register(name=f"Visitante {index}", service="Primeira vez")
            for _ in range(5):
                await asyncio.sleep(0)

        assert len(view.tickets()) == 20
        assert [ticket.number for ticket in view.tickets()][:2] == ["P-001", "P-002"]
        assert "reloading from the store" in caplog.text

        called = await engine.call_next("Guichê 1")
        for _ in range(5):
            await asyncio.sleep(0)
        assert view.get(called.id).status is TicketStatus.CALLING
    finally:
        await view.stop()
