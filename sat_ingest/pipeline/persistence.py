"""
Batched Persistence Coordinator

Consumes rendered tiles in generation order and flushes them in batches.
A flush uploads the batch to object storage while, at the same time,
registering an annotation placeholder per tile and advancing the project's
tile counter. The next batch starts only after both sides finish.
"""

from typing import AsyncIterable, List

from sat_ingest.core.logging import get_logger
from sat_ingest.core.metrics import record_tiles_persisted, track_stage_latency
from sat_ingest.core.storage import IStorage
from sat_ingest.engines.tiling.renderer import RenderedTile
from sat_ingest.modules.annotations.repositories import AnnotationRepository
from sat_ingest.modules.projects.repositories import ProjectRepository
from sat_ingest.pipeline.batching import abatched, gather_in_batches, join_all

logger = get_logger(__name__)


class BatchedPersistenceCoordinator:

    def __init__(
        self,
        storage: IStorage,
        projects: ProjectRepository,
        annotations: AnnotationRepository,
        container: str,
        batch_size: int = 30,
    ):
        self.storage = storage
        self.projects = projects
        self.annotations = annotations
        self.container = container
        self.batch_size = batch_size

    async def persist(
        self,
        project_id: str,
        start_index: int,
        tiles: AsyncIterable[RenderedTile],
    ) -> int:
        """
        Persist a tile stream whose first tile gets image index start_index.

        Returns:
            Number of tiles persisted
        """
        project = await self.projects.get(project_id)
        class_count = len(project.annotation_classes or [])

        image_index = start_index
        container_ready = False

        async for batch in abatched(tiles, self.batch_size):
            if not container_ready:
                await self._ensure_container()
                container_ready = True

            with track_stage_latency("batch_flush"):
                await join_all(
                    self._upload(project_id, batch),
                    self._register(project_id, image_index, len(batch), class_count),
                )

            record_tiles_persisted(len(batch))
            logger.info(
                "batch_flushed",
                project_id=project_id,
                start_index=image_index,
                batch_size=len(batch),
            )
            image_index += len(batch)

        return image_index - start_index

    async def _ensure_container(self) -> None:
        if not await self.storage.container_exists(self.container):
            await self.storage.create_container(self.container)
            logger.info("container_created", container=self.container)

    async def _upload(self, project_id: str, batch: List[RenderedTile]) -> None:
        async def upload_tile(tile: RenderedTile) -> str:
            return await self.storage.upload(
                self.container,
                f"{project_id}/{tile.name}",
                tile.data,
                content_type=tile.content_type,
            )

        await gather_in_batches(upload_tile, batch, self.batch_size)

    async def _register(
        self,
        project_id: str,
        start_index: int,
        count: int,
        class_count: int,
    ) -> None:
        await join_all(
            self.annotations.bulk_upsert_placeholders(
                project_id,
                start_index,
                start_index + count,
                class_count,
            ),
            self.projects.update(project_id, increments={"total_images": count}),
        )
