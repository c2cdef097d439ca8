"""
FastAPI Dependencies

Provides dependency injection for:
- Project / annotation repositories (per-request, session per call)
- Pod orchestrator (process-wide, built once in the lifespan handler)
- Ingestion pipeline (per-request, wired from the above)
"""

from fastapi import Depends, Request

from sat_ingest.core.config import Settings, settings
from sat_ingest.core.database import async_session_maker
from sat_ingest.core.logging import get_logger
from sat_ingest.core.storage import IStorage, get_storage
from sat_ingest.engines.pods.client import PodPlatformClient
from sat_ingest.engines.pods.executor import KubernetesPodExecutor
from sat_ingest.engines.pods.orchestrator import PodOrchestrator
from sat_ingest.engines.tiling.renderer import TileRenderer
from sat_ingest.modules.annotations.repositories import AnnotationRepository
from sat_ingest.modules.projects.repositories import ProjectRepository
from sat_ingest.pipeline.driver import IngestionPipeline
from sat_ingest.pipeline.persistence import BatchedPersistenceCoordinator

logger = get_logger(__name__)


def build_pod_orchestrator(app_settings: Settings) -> PodOrchestrator:
    """Create the process-wide orchestrator; missing credentials disable parts of it."""
    client = PodPlatformClient.from_settings(app_settings)
    executor = KubernetesPodExecutor.from_settings(app_settings)

    logger.info(
        "pod_orchestrator_configured",
        client_enabled=client is not None,
        exec_enabled=executor is not None,
    )
    return PodOrchestrator(client, executor, app_settings)


def get_project_repository() -> ProjectRepository:
    return ProjectRepository(async_session_maker)


def get_annotation_repository() -> AnnotationRepository:
    return AnnotationRepository(async_session_maker)


def get_pod_orchestrator(request: Request) -> PodOrchestrator:
    return request.app.state.pod_orchestrator


def get_ingestion_pipeline(
    storage: IStorage = Depends(get_storage),
    projects: ProjectRepository = Depends(get_project_repository),
    annotations: AnnotationRepository = Depends(get_annotation_repository),
    orchestrator: PodOrchestrator = Depends(get_pod_orchestrator),
) -> IngestionPipeline:
    coordinator = BatchedPersistenceCoordinator(
        storage=storage,
        projects=projects,
        annotations=annotations,
        container=settings.PUBLIC_CONTAINER_NAME,
        batch_size=settings.UPLOAD_BATCH_SIZE,
    )
    return IngestionPipeline(
        storage=storage,
        projects=projects,
        coordinator=coordinator,
        renderer=TileRenderer(settings.IMAGE_SIZE),
        orchestrator=orchestrator,
        settings=settings,
    )
