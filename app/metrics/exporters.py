"""Prometheus text exposition of the metrics registry."""
from __future__ import annotations

import logging

from .base import CounterMetric, Metric
from .registry import MetricsRegistry

logger = logging.getLogger(__name__)


def _label_text(metric: Metric, labels: tuple[str, ...]) -> str:
    if not labels:
        return ""
    pairs = [f'{name}="{value}"' for name, value in zip(metric.label_names, labels)]
    return "{" + ",".join(pairs) + "}"


class PrometheusExporter:
    """Render registry contents in the Prometheus text format."""

    content_type = "text/plain; version=0.0.4; charset=utf-8"

    def __init__(self, registry: MetricsRegistry) -> None:
        self.registry = registry

    def build_payload(self) -> str:
        lines: list[str] = []
        for metric in self.registry.metrics():
            metric_type = "counter" if isinstance(metric, CounterMetric) else "summary"
            lines.append(f"# HELP {metric.name} {metric.description}")
            lines.append(f"# TYPE {metric.name} {metric_type}")
            for labels, values in metric.snapshot().items():
                label_text = _label_text(metric, labels)
                if "value" in values:
                    lines.append(f"{metric.name}{label_text} {values['value']}")
                else:
                    lines.append(f"{metric.name}_count{label_text} {values['count']}")
                    lines.append(f"{metric.name}_sum{label_text} {values['sum']}")
        payload = "\n".join(lines) + "\n"
        logger.debug("Generated metrics payload with %d lines", len(lines))
        return payload
