from datetime import timedelta

import pytest

from sat_ingest.core.database import build_engine
from sat_ingest.core.exceptions import ProjectNotFoundError, UpdateConflictError
from sat_ingest.modules.annotations.models import AnnotationTile, Line, Tool
from sat_ingest.modules.projects.models import Project, ProjectStatus


@pytest.mark.asyncio
async def test_update_sets_fields_and_increments(projects, project):
    updated = await projects.update(
        project.id,
        values={"status": ProjectStatus.UPLOADING},
        increments={"total_images": 5},
    )

    assert updated.status == ProjectStatus.UPLOADING.value
    assert updated.total_images == 5

    updated = await projects.update(project.id, increments={"total_images": 3})
    assert updated.total_images == 8


@pytest.mark.asyncio
async def test_update_missing_project_conflicts(projects):
    with pytest.raises(UpdateConflictError):
        await projects.update("missing", values={"status": ProjectStatus.DRAFT})


@pytest.mark.asyncio
async def test_get_missing_project(projects):
    assert await projects.find_by_id("missing") is None
    with pytest.raises(ProjectNotFoundError):
        await projects.get("missing")


@pytest.mark.asyncio
async def test_annotation_classes_round_trip(projects, project):
    loaded = await projects.get(project.id)
    classes = loaded.get_annotation_classes()

    assert [c.name for c in classes] == ["field", "road"]
    assert classes[1].hot_key == "r"


@pytest.mark.asyncio
async def test_bulk_upsert_creates_empty_placeholders(annotations, project):
    inserted = await annotations.bulk_upsert_placeholders(project.id, 0, 3, class_count=2)

    assert inserted == 3
    assert await annotations.list_indices(project.id) == [0, 1, 2]

    tile = await annotations.get(project.id, 1)
    assert tile.annotations == ["", ""]
    assert tile.lines == []


@pytest.mark.asyncio
async def test_bulk_upsert_keeps_existing_content(annotations, project):
    await annotations.bulk_upsert_placeholders(project.id, 0, 2, class_count=2)

    tile = await annotations.get(project.id, 0)
    tile.annotations = ["bWFzaw==", ""]
    tile.lines = [Line(tool=Tool.PEN, size=3, annotation_class_id="c1", points=[1, 2, 3, 4]).model_dump(mode="json")]
    await annotations.save(tile)

    inserted = await annotations.bulk_upsert_placeholders(project.id, 0, 4, class_count=2)

    assert inserted == 2
    assert await annotations.count(project.id) == 4
    kept = await annotations.get(project.id, 0)
    assert kept.annotations == ["bWFzaw==", ""]
    assert kept.get_lines()[0].points == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_bulk_upsert_empty_range(annotations, project):
    assert await annotations.bulk_upsert_placeholders(project.id, 5, 5, class_count=2) == 0
    assert await annotations.count(project.id) == 0


@pytest.mark.asyncio
async def test_timestamps_are_timezone_aware(projects, annotations):
    project = Project(name="Aware")
    tile = AnnotationTile(project_id=project.id, image_index=0)

    for value in (project.created_at, project.updated_at, tile.created_at, tile.updated_at):
        assert value.tzinfo is not None
        assert value.utcoffset() == timedelta(0)

    saved = await projects.save(project)
    updated = await projects.update(saved.id, values={"status": ProjectStatus.UPLOADING}, increments={"total_images": 1})
    assert updated.total_images == 1
    assert await annotations.bulk_upsert_placeholders(saved.id, 0, 1, class_count=0) == 1

    drafted = await projects.set_status(saved.id, ProjectStatus.DRAFT)
    assert drafted.status == ProjectStatus.DRAFT.value


def test_in_memory_sqlite_is_rejected():
    with pytest.raises(ValueError):
        build_engine("sqlite+aiosqlite:///:memory:")
