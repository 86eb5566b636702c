from fastapi import APIRouter, Response

from app.metrics import metrics_registry
from app.metrics.exporters import PrometheusExporter

router = APIRouter(tags=["health"])


@router.get("/metrics", summary="Prometheus metrics")
async def metrics() -> Response:
    exporter = PrometheusExporter(metrics_registry)
    return Response(content=exporter.build_payload(), media_type=PrometheusExporter.content_type)
