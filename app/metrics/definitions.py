"""Metric definitions used across the application."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


TICKETS_REGISTERED = "queue_tickets_registered_total"
TICKETS_CALLED = "queue_tickets_called_total"
CALL_RACES = "queue_call_races_total"
TRANSITIONS = "queue_transitions_total"
CALL_NEXT_DURATION = "queue_call_next_duration_seconds"

DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKETS_REGISTERED,
        metric_type="counter",
        description="Tickets registered at the reception desk.",
        label_names=("service",),
    ),
    MetricDefinition(
        name=TICKETS_CALLED,
        metric_type="counter",
        description="Tickets moved from waiting to calling.",
    ),
    MetricDefinition(
        name=CALL_RACES,
        metric_type="counter",
        description="Call-next attempts lost to another attendant.",
    ),
    MetricDefinition(
        name=TRANSITIONS,
        metric_type="counter",
        description="Ticket status transitions by target status.",
        label_names=("status",),
    ),
    MetricDefinition(
        name=CALL_NEXT_DURATION,
        metric_type="distribution",
        description="Duration of call-next operations in seconds.",
    ),
)
