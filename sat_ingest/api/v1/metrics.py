"""
Metrics Endpoint

GET /api/v1/metrics - Prometheus metrics endpoint
"""

from fastapi import APIRouter, Response

from sat_ingest.core.metrics import get_metrics, get_metrics_content_type

router = APIRouter()


@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
    - pipeline_latency_seconds (per stage)
    - tiles_persisted_total
    - sat_ingest_pipeline_runs_total
    - pod_operations_total
    - http_requests_total
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
