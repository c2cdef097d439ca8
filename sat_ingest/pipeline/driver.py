"""
Ingestion Pipeline Driver

Split-and-upload for files already staged in the original container:

    validate -> plan -> render + persist (batched) -> first upload starts the pod

Files are processed one after another. Any failure puts the project back
to DRAFT and is re-raised. Only the status is rolled back: tiles and
counter increments from batches that already flushed remain in place.
"""

from contextlib import aclosing
from typing import List

from sat_ingest.core.config import Settings
from sat_ingest.core.exceptions import ValidationError
from sat_ingest.core.logging import LogContext, get_logger, with_logging
from sat_ingest.core.metrics import record_pipeline_run
from sat_ingest.core.storage import IStorage
from sat_ingest.engines.pods.orchestrator import PodOrchestrator
from sat_ingest.engines.tiling.images import ImageInfo, read_image_info
from sat_ingest.engines.tiling.planner import plan_image
from sat_ingest.engines.tiling.renderer import TileRenderer
from sat_ingest.modules.projects.models import ProjectStatus
from sat_ingest.modules.projects.repositories import ProjectRepository
from sat_ingest.pipeline.persistence import BatchedPersistenceCoordinator

logger = get_logger(__name__)


class IngestionPipeline:

    def __init__(
        self,
        storage: IStorage,
        projects: ProjectRepository,
        coordinator: BatchedPersistenceCoordinator,
        renderer: TileRenderer,
        orchestrator: PodOrchestrator,
        settings: Settings,
    ):
        self.storage = storage
        self.projects = projects
        self.coordinator = coordinator
        self.renderer = renderer
        self.orchestrator = orchestrator
        self.settings = settings

    async def split_and_upload_images(self, project_id: str, file_names: List[str]) -> int:
        """
        Tile and upload every file in order.

        Returns:
            Total number of tiles persisted across all files
        """
        with LogContext(project_id=project_id, stage="split_upload"):
            try:
                await self.projects.get(project_id)
                await self.projects.set_status(project_id, ProjectStatus.UPLOADING)

                total = 0
                for file_name in file_names:
                    total += await self.process_file(project_id, file_name)

                await self.projects.set_status(project_id, ProjectStatus.IN_PROGRESS)
            except Exception as e:
                logger.error("split_upload_failed", error=str(e), error_type=type(e).__name__)
                record_pipeline_run("failed")
                await self._rollback(project_id)
                raise

            record_pipeline_run("completed")
            logger.info("split_upload_completed", files=len(file_names), tiles=total)
            return total

    @with_logging("process_file")
    async def process_file(self, project_id: str, file_name: str) -> int:
        logger.info("download_started", file_name=file_name)
        data = await self.storage.download(
            self.settings.ORIGINAL_CONTAINER_NAME,
            f"{project_id}/{file_name}",
        )
        logger.info("download_completed", file_name=file_name, byte_size=len(data))

        info = read_image_info(data)
        await self.verify_image(project_id, info)

        project = await self.projects.get(project_id)
        start_index = project.total_images

        plan = plan_image(info, file_name, self.settings.IMAGE_SIZE)
        logger.info(
            "tiles_planned",
            file_name=file_name,
            rows=plan.num_rows,
            columns=plan.num_columns,
        )

        async with aclosing(self.renderer.render(data, plan)) as tiles:
            persisted = await self.coordinator.persist(project_id, start_index, tiles)

        if start_index == 0 and persisted > 0:
            await self.orchestrator.create_or_update_pod(project_id)

        logger.info("file_split_completed", file_name=file_name, tiles=persisted)
        return persisted

    async def verify_image(self, project_id: str, info: ImageInfo) -> None:
        if (
            info.byte_size > self.settings.IMAGE_MEMORY_SIZE_LIMIT
            or info.pixel_area > self.settings.IMAGE_DIMENSIONS_LIMIT
        ):
            await self.projects.set_status(project_id, ProjectStatus.DRAFT)
            raise ValidationError(
                f"Project {project_id} - Upload image failed due to excess resources",
                project_id=project_id,
                details={
                    "byte_size": info.byte_size,
                    "width": info.width,
                    "height": info.height,
                },
            )

    async def _rollback(self, project_id: str) -> None:
        try:
            await self.projects.set_status(project_id, ProjectStatus.DRAFT)
        except Exception as e:
            # The original error is re-raised by the caller
            logger.error("rollback_failed", error=str(e), error_type=type(e).__name__)
