import uuid
from datetime import datetime, timezone

import fakeredis.aioredis
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.database import Base
from app.models import NewsArticle
from app.security import create_access_token


# ---------------------------------------------------------------------------
# In-memory SQLite stands in for Postgres; the news.id UUID column is
# rendered as CHAR(32) there.
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_UUID, "sqlite")
    def compile_pg_uuid_for_sqlite(type_, compiler, **kw):
        return "CHAR(32)"

    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Redis stand-in for the curated-view cache
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def fake_redis():
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield r
    await r.flushall()
    await r.aclose()


# ---------------------------------------------------------------------------
# Article fixtures
# ---------------------------------------------------------------------------

SAMPLE_ARTICLE_ID = uuid.UUID("aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee")
DRAFT_ARTICLE_ID = uuid.UUID("11111111-2222-3333-4444-555555555555")
SAMPLE_PUBLISHED_AT = datetime(2026, 2, 20, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def make_article(db_session):
    """Factory inserting a NewsArticle with sensible defaults."""

    async def _make(**overrides) -> NewsArticle:
        is_published = overrides.get("is_published", True)
        fields = dict(
            title="Major Tournament Announced",
            excerpt="The organisers confirmed the dates.",
            content="The tournament will take place in spring. " * 10,
            author="Jane Writer",
            category="esports",
            is_published=is_published,
            is_featured=False,
            views=0,
            read_time=1,
            published_at=SAMPLE_PUBLISHED_AT if is_published else None,
        )
        fields.update(overrides)
        article = NewsArticle(**fields)
        db_session.add(article)
        await db_session.commit()
        await db_session.refresh(article)
        return article

    return _make


@pytest_asyncio.fixture
async def sample_article(make_article):
    return await make_article(
        id=SAMPLE_ARTICLE_ID,
        title="Test Article Title",
        excerpt="A short excerpt",
        content="Full article content for testing. " * 20,
        author="Alice Reporter",
        category="updates",
        is_featured=True,
        views=5,
        read_time=1,
    )


@pytest_asyncio.fixture
async def draft_article(make_article):
    return await make_article(
        id=DRAFT_ARTICLE_ID,
        title="Unreleased Patch Notes",
        excerpt="Not ready yet",
        content="Draft body text.",
        author="Bob Editor",
        category="updates",
        is_published=False,
    )


# ---------------------------------------------------------------------------
# Auth headers
# ---------------------------------------------------------------------------

@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin-1', role='admin')}"}


@pytest.fixture
def user_headers():
    return {"Authorization": f"Bearer {create_access_token('reader-1', role='user')}"}


# ---------------------------------------------------------------------------
# FastAPI test client with dependency overrides
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def client(db_session, fake_redis):
    from app.database import get_db
    from app.main import app
    from app.services.cache import get_redis

    async def override_get_db():
        yield db_session

    async def override_get_redis():
        return fake_redis

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
