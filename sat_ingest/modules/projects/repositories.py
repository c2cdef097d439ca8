"""
Project Repository

Document-style access to projects: lookup by id and single-document
find-one-and-update with field sets and atomic increments. Each call runs in
its own session so independent calls may be awaited concurrently.
"""

from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from sat_ingest.core.exceptions import (
    DocumentStoreError,
    ProjectNotFoundError,
    UpdateConflictError,
)
from sat_ingest.modules.projects.models import Project, ProjectStatus, utc_now


class ProjectRepository:
    """Repository for project documents."""

    def __init__(self, session_maker: sessionmaker):
        self.session_maker = session_maker

    async def save(self, project: Project) -> Project:
        async with self.session_maker() as session:
            try:
                session.add(project)
                await session.commit()
                await session.refresh(project)
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Saving project failed: {e}") from e
        return project

    async def find_by_id(self, project_id: str) -> Optional[Project]:
        async with self.session_maker() as session:
            try:
                return await session.get(Project, project_id)
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Loading project {project_id} failed: {e}") from e

    async def get(self, project_id: str) -> Project:
        """Like find_by_id, but a missing project is an error."""
        project = await self.find_by_id(project_id)
        if project is None:
            raise ProjectNotFoundError(project_id)
        return project

    async def update(
        self,
        project_id: str,
        values: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> Project:
        """
        Apply field sets and increments in one statement and return the
        updated project.

        Raises:
            UpdateConflictError: no project with this id
        """
        assignments: Dict[str, Any] = {
            field: value.value if isinstance(value, Enum) else value
            for field, value in (values or {}).items()
        }
        for field, amount in (increments or {}).items():
            assignments[field] = getattr(Project, field) + amount
        assignments["updated_at"] = utc_now()

        async with self.session_maker() as session:
            try:
                result = await session.execute(
                    update(Project)
                    .where(Project.id == project_id)
                    .values(**assignments)
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise UpdateConflictError(project_id)
                await session.commit()
                return await session.get(Project, project_id, populate_existing=True)
            except SQLAlchemyError as e:
                raise DocumentStoreError(f"Updating project {project_id} failed: {e}") from e

    async def set_status(self, project_id: str, status: ProjectStatus) -> Project:
        return await self.update(project_id, values={"status": status})
