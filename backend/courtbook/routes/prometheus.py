"""
Prometheus metrics endpoint for monitoring infrastructure.

Exposes the service operation, conflict, notification and no-show metrics
collected on the application registry.
"""

from fastapi import APIRouter, Response

from courtbook.monitoring.prometheus_metrics import prometheus_metrics

router = APIRouter()


@router.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(
        content=prometheus_metrics.get_metrics(),
        media_type=prometheus_metrics.get_content_type(),
    )
