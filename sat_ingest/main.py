"""
Satellite Tile Ingestion Service - Main Application

FastAPI application with:
- API versioning (/api/v1/)
- Structured logging with structlog
- Prometheus metrics
- Plain-text exception handling
- Storage abstraction (local + Azure Blob)
- Pod orchestrator configured once per process
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sat_ingest.core.config import settings
from sat_ingest.core.database import create_db_and_tables, engine
from sat_ingest.core.logging import setup_logging, get_logger
from sat_ingest.core.exceptions import register_exception_handlers
from sat_ingest.core.metrics import set_app_info, http_requests_total, http_request_duration_seconds
from sat_ingest.core.storage import StorageFactory
from sat_ingest.api.v1 import api_v1_router
from sat_ingest.api.dependencies import build_pod_orchestrator


# =============================================================================
# Initialize Logging
# =============================================================================
setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=settings.LOG_FORMAT_JSON
)
logger = get_logger(__name__)


# =============================================================================
# Lifespan Handler
# =============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - startup and shutdown."""
    startup_start = time.time()

    logger.info(
        "application_starting",
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )

    await create_db_and_tables()
    logger.info("database_initialized")

    app.state.pod_orchestrator = build_pod_orchestrator(settings)

    set_app_info(
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT
    )

    startup_time = time.time() - startup_start
    logger.info("application_ready", startup_time_seconds=startup_time)

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await app.state.pod_orchestrator.close()
    await StorageFactory.get_storage().close()
    StorageFactory.reset()
    await engine.dispose()
    logger.info("application_shutdown_complete")


# =============================================================================
# Create FastAPI Application
# =============================================================================
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Splits large raster images into fixed-size tiles and registers them
    against annotation projects.

    - **Tiling**: uniform S x S tiles, edge tiles padded
    - **Batched upload**: bounded-parallel object storage uploads
    - **Bookkeeping**: tile counter and annotation placeholders per batch
    - **Pods**: a project's first upload stands up its training pod
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# =============================================================================
# Middleware
# =============================================================================

cors_origins = settings.CORS_ORIGINS.split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_request_timing(request: Request, call_next):
    """Track request timing for metrics."""
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path
    ).observe(duration)

    http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    response.headers["X-Process-Time"] = str(duration)

    return response


# =============================================================================
# Register Exception Handlers
# =============================================================================
register_exception_handlers(app)


# =============================================================================
# Include API Routers
# =============================================================================
app.include_router(api_v1_router)


# =============================================================================
# Root Endpoints
# =============================================================================

@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "docs": "/api/docs",
        "api_v1": "/api/v1",
        "metrics": "/api/v1/metrics"
    }


@app.get("/health", tags=["health"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION
    }


@app.get("/ready", tags=["health"])
async def ready(request: Request):
    """Readiness check - verifies the document store and pod client."""
    checks = {
        "database": False,
        "pod_client": request.app.state.pod_orchestrator.enabled,
    }

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = True
    except SQLAlchemyError as e:
        logger.warning("database_not_ready", error=str(e))

    return JSONResponse(
        status_code=200 if checks["database"] else 503,
        content={"ready": checks["database"], "checks": checks}
    )


# =============================================================================
# Development Server
# =============================================================================
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "sat_ingest.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
