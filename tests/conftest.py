from __future__ import annotations

import pytest

from app.metrics import MetricsRegistry
from app.queue import InMemoryTicketStore, QueueEngine

from .factories import FORTALEZA, FakeClock, no_sleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry() -> MetricsRegistry:
    return MetricsRegistry()


@pytest.fixture
def store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def engine(store: InMemoryTicketStore, clock: FakeClock, registry: MetricsRegistry) -> QueueEngine:
    return QueueEngine(store, tz=FORTALEZA, clock=clock, metrics=registry, sleep=no_sleep)
