"""
API v1 Router Module - Tile Ingestion

All v1 endpoints are prefixed with /api/v1/

- POST /api/v1/split-images - Split staged images into tiles and upload them
- GET  /api/v1/metrics      - Prometheus metrics
"""

from fastapi import APIRouter

from sat_ingest.api.v1.split import router as split_router
from sat_ingest.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(split_router, prefix="/split-images", tags=["ingestion"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
