import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from sat_ingest.core.exceptions import StorageError
from sat_ingest.engines.tiling.renderer import RenderedTile
from sat_ingest.pipeline.batching import abatched, gather_in_batches, join_all
from sat_ingest.pipeline.persistence import BatchedPersistenceCoordinator

CONTAINER = "public"


async def tile_stream(count: int, prefix: str = "img"):
    for index in range(count):
        yield RenderedTile(name=f"{prefix}_{index}.png", data=b"tile-%d" % index, content_type="image/png")


@pytest.fixture
def coordinator(storage, projects, annotations):
    return BatchedPersistenceCoordinator(
        storage=storage,
        projects=projects,
        annotations=annotations,
        container=CONTAINER,
        batch_size=30,
    )


@pytest.mark.asyncio
async def test_65_tiles_flush_in_three_batches(coordinator, annotations, projects, project, storage):
    with patch.object(
        annotations,
        "bulk_upsert_placeholders",
        wraps=annotations.bulk_upsert_placeholders,
    ) as upsert:
        persisted = await coordinator.persist(project.id, 0, tile_stream(65))

    assert persisted == 65
    assert [(c.args[1], c.args[2]) for c in upsert.call_args_list] == [(0, 30), (30, 60), (60, 65)]

    reloaded = await projects.get(project.id)
    assert reloaded.total_images == 65
    assert await annotations.list_indices(project.id) == list(range(65))
    assert await storage.exists(CONTAINER, f"{project.id}/img_64.png")


@pytest.mark.asyncio
async def test_indices_continue_from_start_index(coordinator, annotations, projects, project):
    await projects.update(project.id, increments={"total_images": 10})
    await annotations.bulk_upsert_placeholders(project.id, 0, 10, class_count=2)

    persisted = await coordinator.persist(project.id, 10, tile_stream(7))

    assert persisted == 7
    reloaded = await projects.get(project.id)
    assert reloaded.total_images == 17
    assert await annotations.list_indices(project.id) == list(range(17))


@pytest.mark.asyncio
async def test_placeholders_match_annotation_classes(coordinator, annotations, project):
    await coordinator.persist(project.id, 0, tile_stream(1))

    tile = await annotations.get(project.id, 0)
    assert tile.annotations == ["", ""]


@pytest.mark.asyncio
async def test_container_created_lazily(coordinator, project, storage):
    assert not await storage.container_exists(CONTAINER)

    assert await coordinator.persist(project.id, 0, tile_stream(0)) == 0
    assert not await storage.container_exists(CONTAINER)

    await coordinator.persist(project.id, 0, tile_stream(1))
    assert await storage.container_exists(CONTAINER)


@pytest.mark.asyncio
async def test_failed_upload_aborts_remaining_batches(coordinator, annotations, project, storage):
    await storage.create_container(CONTAINER)
    original_upload = storage.upload

    async def flaky_upload(container, path, data, content_type="application/octet-stream"):
        if path.endswith("img_45.png"):
            raise StorageError("upload refused")
        return await original_upload(container, path, data, content_type)

    with patch.object(storage, "upload", side_effect=flaky_upload), patch.object(
        annotations,
        "bulk_upsert_placeholders",
        wraps=annotations.bulk_upsert_placeholders,
    ) as upsert:
        with pytest.raises(StorageError):
            await coordinator.persist(project.id, 0, tile_stream(65))

    assert upsert.call_count == 2
    assert not await storage.exists(CONTAINER, f"{project.id}/img_60.png")


@pytest.mark.asyncio
async def test_abatched_yields_trailing_partial():
    batches = [batch async for batch in abatched(tile_stream(5), 2)]
    assert [len(b) for b in batches] == [2, 2, 1]


@pytest.mark.asyncio
async def test_gather_in_batches_bounds_parallelism():
    running = 0
    peak = 0

    async def task(item):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0)
        running -= 1
        return item * 2

    results = await gather_in_batches(task, list(range(7)), 3)

    assert results == [0, 2, 4, 6, 8, 10, 12]
    assert peak == 3


@pytest.mark.asyncio
async def test_join_all_waits_for_every_branch():
    slow = AsyncMock(return_value="done")

    async def failing():
        raise StorageError("boom")

    with pytest.raises(StorageError):
        await join_all(failing(), slow())

    slow.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_upload_waits_for_sibling_uploads(storage, projects, annotations, project):
    await storage.create_container(CONTAINER)
    original_upload = storage.upload
    finished = []

    async def slow_upload(container, path, data, content_type="application/octet-stream"):
        if path.endswith("img_0.png"):
            raise StorageError("upload refused")
        await asyncio.sleep(0.05)
        result = await original_upload(container, path, data, content_type)
        finished.append(path)
        return result

    coordinator = BatchedPersistenceCoordinator(
        storage=storage,
        projects=projects,
        annotations=annotations,
        container=CONTAINER,
        batch_size=3,
    )

    with patch.object(storage, "upload", side_effect=slow_upload):
        with pytest.raises(StorageError):
            await coordinator.persist(project.id, 0, tile_stream(3))

    assert sorted(finished) == [f"{project.id}/img_1.png", f"{project.id}/img_2.png"]


@pytest.mark.asyncio
async def test_gather_in_batches_raises_first_failure_after_group():
    done = []

    async def task(item):
        if item in (0, 1):
            raise StorageError(f"failed {item}")
        await asyncio.sleep(0.01)
        done.append(item)
        return item

    with pytest.raises(StorageError, match="failed 0"):
        await gather_in_batches(task, [0, 1, 2, 3, 4], 3)

    # The group holding the failures finishes; the next group never starts
    assert done == [2]
