import io
import os
import tempfile

# Settings are read at import time; point them at throwaway resources first
_TEST_DIR = tempfile.mkdtemp(prefix="sat-ingest-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TEST_DIR, 'app.db')}"
os.environ["LOCAL_STORAGE_PATH"] = os.path.join(_TEST_DIR, "storage")
os.environ.pop("AZURE_STORAGE_CONNECTION_STRING", None)
os.environ.pop("AKS_TOKEN", None)
os.environ.pop("AKS_CLUSTER_SERVER", None)

import pytest
from httpx import AsyncClient, ASGITransport
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from typing import AsyncGenerator

from sat_ingest.core.database import build_engine, create_db_and_tables
from sat_ingest.core.storage import LocalStorage
from sat_ingest.modules.annotations.repositories import AnnotationRepository
from sat_ingest.modules.projects.models import AnnotationClass, Project
from sat_ingest.modules.projects.repositories import ProjectRepository


def make_image_bytes(width: int, height: int, image_format: str = "PNG", mode: str = "RGBA", color=(200, 10, 10, 255)) -> bytes:
    if mode != "RGBA" and isinstance(color, tuple):
        color = color[:len(mode)]
    image = Image.new(mode, (width, height), color)
    buffer = io.BytesIO()
    image.save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
async def session_maker(tmp_path) -> AsyncGenerator[sessionmaker, None]:
    # File-backed so concurrent sessions get their own connections
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await create_db_and_tables(engine)
    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def projects(session_maker) -> ProjectRepository:
    return ProjectRepository(session_maker)


@pytest.fixture
def annotations(session_maker) -> AnnotationRepository:
    return AnnotationRepository(session_maker)


@pytest.fixture
async def project(projects) -> Project:
    return await projects.save(Project(
        name="Field survey",
        description="Crop boundaries",
        annotation_classes=[
            AnnotationClass(name="field", color="#00ff00").model_dump(),
            AnnotationClass(name="road", color="#888888", hot_key="r").model_dump(),
        ],
    ))


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(base_path=str(tmp_path / "storage"))


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from sat_ingest.main import app

    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def make_image():
    return make_image_bytes
