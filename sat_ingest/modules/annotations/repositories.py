"""
Annotation-Tile Repository

Bulk registration of empty annotation records keyed by
(project_id, image_index). Existing records are never overwritten, so
re-running a registration for the same indices only fills gaps.
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sat_ingest.core.exceptions import DocumentStoreError
from sat_ingest.modules.annotations.models import AnnotationTile, empty_masks
from sat_ingest.modules.projects.models import utc_now

_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class AnnotationRepository:
    """Repository for annotation tiles."""

    def __init__(self, session_maker: sessionmaker):
        self.session_maker = session_maker

    async def bulk_upsert_placeholders(
        self,
        project_id: str,
        start_index: int,
        end_index: int,
        class_count: int,
    ) -> int:
        """
        Insert an empty record for every index in [start_index, end_index)
        that does not exist yet.

        Returns:
            Number of records inserted
        """
        if end_index <= start_index:
            return 0

        now = utc_now()
        rows = [
            {
                "project_id": project_id,
                "image_index": image_index,
                "annotations": empty_masks(class_count),
                "lines": [],
                "created_at": now,
                "updated_at": now,
            }
            for image_index in range(start_index, end_index)
        ]

        async with self.session_maker() as session:
            try:
                dialect = session.get_bind().dialect.name
                if dialect not in _INSERTS:
                    raise DocumentStoreError(f"Upsert is not supported on {dialect}")
                statement = (
                    _INSERTS[dialect](AnnotationTile.__table__)
                    .values(rows)
                    .on_conflict_do_nothing(index_elements=["project_id", "image_index"])
                )
                result = await session.execute(statement)
                await session.commit()
            except SQLAlchemyError as e:
                raise DocumentStoreError(
                    f"Registering tiles {start_index}-{end_index} of project {project_id} failed: {e}"
                ) from e

        return result.rowcount

    async def get(self, project_id: str, image_index: int) -> Optional[AnnotationTile]:
        async with self.session_maker() as session:
            try:
                return await session.get(AnnotationTile, (project_id, image_index))
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Loading tile {image_index} failed: {e}") from e

    async def save(self, tile: AnnotationTile) -> AnnotationTile:
        async with self.session_maker() as session:
            try:
                tile = await session.merge(tile)
                await session.commit()
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Saving tile {tile.image_index} failed: {e}") from e
        return tile

    async def count(self, project_id: str) -> int:
        async with self.session_maker() as session:
            result = await session.execute(
                select(func.count())
                .select_from(AnnotationTile)
                .where(AnnotationTile.project_id == project_id)
            )
            return result.scalar_one()

    async def list_indices(self, project_id: str) -> List[int]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(AnnotationTile.image_index)
                .where(AnnotationTile.project_id == project_id)
                .order_by(AnnotationTile.image_index)
            )
            return list(result.scalars().all())
