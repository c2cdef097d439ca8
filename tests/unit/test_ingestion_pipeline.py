import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from sat_ingest.core.config import Settings
from sat_ingest.core.exceptions import InvalidImageError, ObjectNotFoundError, ValidationError
from sat_ingest.engines.tiling.renderer import TileRenderer
from sat_ingest.modules.projects.models import ProjectStatus
from sat_ingest.pipeline.driver import IngestionPipeline
from sat_ingest.pipeline.persistence import BatchedPersistenceCoordinator


@pytest.fixture
def settings() -> Settings:
    return Settings(UPLOAD_BATCH_SIZE=4, IMAGE_SIZE=256)


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.create_or_update_pod = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def pipeline(storage, projects, annotations, orchestrator, settings) -> IngestionPipeline:
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


@pytest.fixture
async def stage(storage, settings):
    await storage.create_container(settings.ORIGINAL_CONTAINER_NAME)

    async def _stage(project_id: str, file_name: str, data: bytes) -> None:
        await storage.upload(settings.ORIGINAL_CONTAINER_NAME, f"{project_id}/{file_name}", data)

    return _stage


@pytest.mark.asyncio
async def test_first_upload_starts_pod(pipeline, projects, annotations, project, stage, storage, settings, orchestrator, make_image):
    await stage(project.id, "scene.png", make_image(600, 400))

    total = await pipeline.split_and_upload_images(project.id, ["scene.png"])

    assert total == 6
    reloaded = await projects.get(project.id)
    assert reloaded.status == ProjectStatus.IN_PROGRESS.value
    assert reloaded.total_images == 6
    assert await annotations.list_indices(project.id) == list(range(6))
    assert await storage.exists(settings.PUBLIC_CONTAINER_NAME, f"{project.id}/scene_1_2.png")
    orchestrator.create_or_update_pod.assert_awaited_once_with(project.id)


@pytest.mark.asyncio
async def test_second_file_continues_indices(pipeline, projects, annotations, project, stage, orchestrator, make_image):
    await stage(project.id, "a.png", make_image(300, 300))
    await stage(project.id, "b.png", make_image(256, 256))

    total = await pipeline.split_and_upload_images(project.id, ["a.png", "b.png"])

    assert total == 5
    assert (await projects.get(project.id)).total_images == 5
    assert await annotations.list_indices(project.id) == list(range(5))
    # Only the file that started from index 0 triggers the pod
    orchestrator.create_or_update_pod.assert_awaited_once()


@pytest.mark.asyncio
async def test_later_upload_does_not_start_pod(pipeline, projects, project, stage, orchestrator, make_image):
    await projects.update(project.id, increments={"total_images": 3})
    await stage(project.id, "more.png", make_image(100, 100))

    await pipeline.split_and_upload_images(project.id, ["more.png"])

    orchestrator.create_or_update_pod.assert_not_awaited()
    assert (await projects.get(project.id)).total_images == 4


@pytest.mark.asyncio
async def test_status_is_uploading_while_running(pipeline, projects, project, stage, make_image):
    await stage(project.id, "a.png", make_image(10, 10))
    seen = []
    original = pipeline.process_file

    async def spy(project_id, file_name):
        seen.append((await projects.get(project_id)).status)
        return await original(project_id, file_name)

    with patch.object(pipeline, "process_file", side_effect=spy):
        await pipeline.split_and_upload_images(project.id, ["a.png"])

    assert seen == [ProjectStatus.UPLOADING.value]


@pytest.mark.asyncio
async def test_oversized_image_is_rejected(pipeline, projects, project, stage, storage, settings, orchestrator, make_image):
    pipeline.settings = settings.model_copy(update={"IMAGE_DIMENSIONS_LIMIT": 100 * 100})
    await stage(project.id, "huge.png", make_image(200, 200))

    with pytest.raises(ValidationError) as exc_info:
        await pipeline.split_and_upload_images(project.id, ["huge.png"])

    assert "excess resources" in str(exc_info.value)
    reloaded = await projects.get(project.id)
    assert reloaded.status == ProjectStatus.DRAFT.value
    assert reloaded.total_images == 0
    assert not await storage.container_exists(settings.PUBLIC_CONTAINER_NAME)
    orchestrator.create_or_update_pod.assert_not_awaited()


@pytest.mark.asyncio
async def test_byte_size_limit(pipeline, projects, project, stage, settings, make_image):
    data = make_image(50, 50)
    pipeline.settings = settings.model_copy(update={"IMAGE_MEMORY_SIZE_LIMIT": len(data) - 1})
    await stage(project.id, "heavy.png", data)

    with pytest.raises(ValidationError):
        await pipeline.split_and_upload_images(project.id, ["heavy.png"])

    assert (await projects.get(project.id)).status == ProjectStatus.DRAFT.value


@pytest.mark.asyncio
async def test_missing_file_rolls_back_to_draft(pipeline, projects, project, stage):
    with pytest.raises(ObjectNotFoundError):
        await pipeline.split_and_upload_images(project.id, ["missing.png"])

    assert (await projects.get(project.id)).status == ProjectStatus.DRAFT.value


@pytest.mark.asyncio
async def test_invalid_image_rolls_back_to_draft(pipeline, projects, project, stage):
    await stage(project.id, "broken.png", b"not an image at all")

    with pytest.raises(InvalidImageError):
        await pipeline.split_and_upload_images(project.id, ["broken.png"])

    assert (await projects.get(project.id)).status == ProjectStatus.DRAFT.value


@pytest.mark.asyncio
async def test_failure_keeps_flushed_batches(pipeline, projects, project, stage, make_image):
    await stage(project.id, "ok.png", make_image(600, 400))

    await pipeline.split_and_upload_images(project.id, ["ok.png"])

    with pytest.raises(ObjectNotFoundError):
        await pipeline.split_and_upload_images(project.id, ["ok.png", "missing.png"])

    reloaded = await projects.get(project.id)
    assert reloaded.status == ProjectStatus.DRAFT.value
    # Counter is not rolled back
    assert reloaded.total_images == 12


@pytest.mark.asyncio
async def test_pod_failure_rolls_back(pipeline, projects, project, stage, orchestrator, make_image):
    orchestrator.create_or_update_pod.side_effect = RuntimeError("platform down")
    await stage(project.id, "a.png", make_image(10, 10))

    with pytest.raises(RuntimeError):
        await pipeline.split_and_upload_images(project.id, ["a.png"])

    assert (await projects.get(project.id)).status == ProjectStatus.DRAFT.value
