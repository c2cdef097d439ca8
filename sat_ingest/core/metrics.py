"""
Prometheus Metrics for Observability

Tracks tile ingestion throughput, batch latency and pod lifecycle calls.
Exposes /metrics endpoint for Prometheus scraping.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Info,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
pipeline_latency_seconds = Histogram(
    "pipeline_latency_seconds",
    "Time spent in each pipeline stage",
    labelnames=["stage", "status"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0]
)

# Tiles persisted (uploaded + registered)
tiles_persisted_total = Counter(
    "tiles_persisted_total",
    "Total number of tiles uploaded and registered"
)

# Ingestion runs
pipeline_runs_total = Counter(
    "sat_ingest_pipeline_runs_total",
    "Split-and-upload runs by outcome",
    labelnames=["status"]
)

# Pod platform calls
pod_operations_total = Counter(
    "pod_operations_total",
    "Pod lifecycle operations",
    labelnames=["operation", "result"]
)

# API Request Metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    labelnames=["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration",
    labelnames=["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# Application Info
app_info = Info(
    "sat_ingest_app",
    "Application information"
)


# =============================================================================
# Helper Functions
# =============================================================================

def set_app_info(version: str, environment: str):
    """Set application info metric."""
    app_info.info({
        "version": version,
        "environment": environment
    })


@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("batch_flush"):
            # do work
    """
    start = time.time()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.time() - start
        pipeline_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_tiles_persisted(count: int):
    tiles_persisted_total.inc(count)


def record_pipeline_run(status: str):
    """Record a finished split-and-upload run (completed / failed)."""
    pipeline_runs_total.labels(status=status).inc()


def record_pod_operation(operation: str, result: str):
    pod_operations_total.labels(operation=operation, result=result).inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get the content type for Prometheus metrics."""
    return CONTENT_TYPE_LATEST
