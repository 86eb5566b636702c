import pytest

from app.metrics import MetricsRegistry, register_default_metrics
from app.metrics.base import track_duration
from app.metrics.definitions import CALL_NEXT_DURATION, TICKETS_REGISTERED
from app.metrics.exporters import PrometheusExporter


def test_counter_requires_declared_labels():
    registry = MetricsRegistry()
    counter = registry.counter("demo_total", label_names=("service",))

    counter.inc(labels={"service": "Inclusão"})
    counter.inc(2, labels={"service": "Inclusão"})

    assert counter.value(labels={"service": "Inclusão"}) == 3
    with pytest.raises(ValueError):
        counter.inc()
    with pytest.raises(ValueError):
        counter.inc(labels={"service": "x", "desk": "1"})


def test_registry_rejects_type_clash():
    registry = MetricsRegistry()
    registry.counter("demo")

    with pytest.raises(TypeError):
        registry.distribution("demo")


def test_track_duration_observes_once():
    registry = MetricsRegistry()
    distribution = registry.distribution("demo_seconds")

    with track_duration(distribution):
        pass

    snapshot = distribution.snapshot()[()]
    assert snapshot["count"] == 1.0
    assert snapshot["sum"] >= 0.0


def test_prometheus_payload_lists_default_metrics():
    registry = MetricsRegistry()
    register_default_metrics(registry)
    registry.counter(TICKETS_REGISTERED, label_names=("service",)).inc(labels={"service": "Primeira vez"})
    registry.distribution(CALL_NEXT_DURATION).observe(0.5)

    payload = PrometheusExporter(registry).build_payload()

    assert f"# TYPE {TICKETS_REGISTERED} counter" in payload
    assert f'{TICKETS_REGISTERED}{{service="Primeira vez"}} 1.0' in payload
    assert f"{CALL_NEXT_DURATION}_count 1.0" in payload
    assert f"{CALL_NEXT_DURATION}_sum 0.5" in payload
