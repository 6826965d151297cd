"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import shelfwatch.models  # noqa: F401
from shelfwatch.models.source import Source, SourceStatus
from tests.helpers import FEED_URL, rss_feed, rss_item


@pytest_asyncio.fixture
async def async_session() -> AsyncGenerator[AsyncSession, None]:
    """创建测试用的内存数据库会话."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def sample_source(async_session: AsyncSession) -> Source:
    """创建测试用的订阅源（ACTIVE）."""
    source = Source(
        user_id="user-1",
        url=FEED_URL,
        status=SourceStatus.ACTIVE,
    )
    async_session.add(source)
    await async_session.commit()
    await async_session.refresh(source)
    return source


@pytest.fixture
def loved_feed() -> str:
    """两条条目：一条 5 星，一条 3 星."""
    return rss_feed(
        rss_item(
            "review-1",
            "The Great Gatsby",
            rating=5,
            author_name="F. Scott Fitzgerald",
            description="An absolute classic. I could not put it down at all.",
            cover="https://images.gr-assets.com/books/gatsby.jpg",
        ),
        rss_item(
            "review-2",
            "Moby Dick",
            rating=3,
            author_name="Herman Melville",
        ),
    )
