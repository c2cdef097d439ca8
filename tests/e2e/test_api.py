import pytest

from sat_ingest.api.dependencies import get_annotation_repository, get_project_repository
from sat_ingest.core.config import settings
from sat_ingest.core.storage import StorageFactory
from sat_ingest.modules.projects.models import AnnotationClass, Project, ProjectStatus


async def create_project() -> Project:
    return await get_project_repository().save(Project(
        name="Coastline",
        annotation_classes=[AnnotationClass(name="water", color="#0000ff").model_dump()],
    ))


async def stage_file(project_id: str, file_name: str, data: bytes) -> None:
    storage = StorageFactory.get_storage()
    await storage.create_container(settings.ORIGINAL_CONTAINER_NAME)
    await storage.upload(settings.ORIGINAL_CONTAINER_NAME, f"{project_id}/{file_name}", data)


@pytest.mark.asyncio
async def test_health_check(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_ready_reports_pod_client_disabled(client):
    response = await client.get("/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["ready"] is True
    assert data["checks"]["pod_client"] is False


@pytest.mark.asyncio
async def test_metrics_endpoint(client):
    response = await client.get("/api/v1/metrics")
    assert response.status_code == 200
    assert "tiles_persisted_total" in response.text


@pytest.mark.asyncio
async def test_split_images_success(client, make_image):
    project = await create_project()
    await stage_file(project.id, "coast.png", make_image(600, 400))

    response = await client.post(
        "/api/v1/split-images",
        json={"project_id": project.id, "file_names": ["coast.png"]}
    )

    assert response.status_code == 200
    assert response.text == "Split and upload images successfully!"

    reloaded = await get_project_repository().get(project.id)
    assert reloaded.status == ProjectStatus.IN_PROGRESS.value
    assert reloaded.total_images == 6
    assert await get_annotation_repository().count(project.id) == 6


@pytest.mark.asyncio
async def test_split_images_unknown_project(client):
    response = await client.post(
        "/api/v1/split-images",
        json={"project_id": "does-not-exist", "file_names": ["a.png"]}
    )

    assert response.status_code == 404
    assert "not found" in response.text


@pytest.mark.asyncio
async def test_split_images_missing_file(client):
    project = await create_project()

    response = await client.post(
        "/api/v1/split-images",
        json={"project_id": project.id, "file_names": ["nowhere.png"]}
    )

    assert response.status_code in (404, 502)
    reloaded = await get_project_repository().get(project.id)
    assert reloaded.status == ProjectStatus.DRAFT.value


@pytest.mark.asyncio
async def test_split_images_requires_file_names(client):
    response = await client.post(
        "/api/v1/split-images",
        json={"project_id": "p1", "file_names": []}
    )
    assert response.status_code == 422
