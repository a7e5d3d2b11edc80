"""In-memory SQLite database for repository tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from istory.core.database import Base
from istory.database import models  # noqa: F401
from istory.database.models import Story

STORY_ID = "3f2b8c1e-9a4d-4e6f-8b21-0c5d7e9f1a23"
AUTHOR_ID = "7d0e5a94-21b3-4c8f-a6e2-5b9c3d1f0e87"


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def story(session) -> Story:
    """A story with content and an author wallet."""
    story = Story(
        id=STORY_ID,
        title="The lake house",
        content="We drove up to the lake house every summer with my grandmother.",
        author_id=AUTHOR_ID,
        author_wallet="0x9f3a6b2c1d4e5f60718293a4b5c6d7e8f9012345",
    )
    session.add(story)
    await session.commit()
    return story
