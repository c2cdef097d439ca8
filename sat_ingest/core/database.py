from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sat_ingest.core.config import settings

# Import ALL models to ensure they're registered with SQLModel.metadata
from sat_ingest.modules.projects.models import Project
from sat_ingest.modules.annotations.models import AnnotationTile


def build_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine.

    Repositories run concurrent sessions (placeholder upsert next to the
    counter increment), each on its own connection. In-memory SQLite gives
    every connection a separate database, so it is rejected.
    """
    if database_url.startswith("sqlite") and ":memory:" in database_url:
        raise ValueError("In-memory SQLite is not supported; use a file-backed database")
    return create_async_engine(database_url, echo=False, future=True)


# Create async engine
engine = build_engine(settings.DATABASE_URL)

# Create async session factory
async_session_maker = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def create_db_and_tables(bind: AsyncEngine = engine):
    """Create all tables if they don't exist."""
    async with bind.begin() as conn:
        await conn.run_sync(lambda sync_conn: SQLModel.metadata.create_all(sync_conn, checkfirst=True))
