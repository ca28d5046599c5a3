import logging
import math
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import NewsArticle, utcnow
from app.schemas import NewsCreate, NewsUpdate
from app.security import Viewer

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200
DEFAULT_SORT = "publishedAt"

# Caller-supplied sort keys resolve only through this table.
SORT_COLUMNS = {
    "title": NewsArticle.title,
    "publishedAt": NewsArticle.published_at,
    "views": NewsArticle.views,
    "author": NewsArticle.author,
    "category": NewsArticle.category,
}


class NewsNotFound(Exception):
    def __init__(self, article_id: UUID):
        super().__init__(f"News article {article_id} not found")
        self.article_id = article_id


class PublishStateConflict(Exception):
    """An update would leave ``is_published`` and ``published_at`` out of step."""

    field = "publishedAt"


def estimate_read_time(content: str) -> int:
    words = len(content.split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


def _published():
    return NewsArticle.is_published.is_(True)


def _order_by(sort_by: str, sort_order: str):
    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        logger.debug("Unknown sort field %r, falling back to %s", sort_by, DEFAULT_SORT)
        column = SORT_COLUMNS[DEFAULT_SORT]
    if sort_order == "asc":
        return column.asc(), NewsArticle.id.asc()
    return column.desc(), NewsArticle.id.desc()


def build_list_filter(
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
):
    conditions = [_published()]
    if search:
        conditions.append(
            or_(
                NewsArticle.title.icontains(search, autoescape=True),
                NewsArticle.excerpt.icontains(search, autoescape=True),
                NewsArticle.content.icontains(search, autoescape=True),
            )
        )
    if category:
        conditions.append(NewsArticle.category == category)
    if author:
        conditions.append(NewsArticle.author.icontains(author, autoescape=True))
    return and_(*conditions)


async def list_news(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
    sort_by: str = DEFAULT_SORT,
    sort_order: str = "desc",
) -> tuple[list[NewsArticle], int]:
    """Return one page of published articles and the total matching count.

    The count runs under the same predicate as the page query, so it does not
    depend on ``page`` or ``limit``.
    """
    where = build_list_filter(search=search, category=category, author=author)

    total = (
        await db.execute(select(func.count()).select_from(NewsArticle).where(where))
    ).scalar_one()

    offset = (page - 1) * limit
    if limit == 0 or offset >= total:
        return [], total

    query = (
        select(NewsArticle)
        .where(where)
        .order_by(*_order_by(sort_by, sort_order))
        .offset(offset)
        .limit(limit)
    )
    rows = (await db.execute(query)).scalars().all()
    return list(rows), total


async def _get_existing(db: AsyncSession, article_id: UUID) -> NewsArticle:
    article = await db.get(NewsArticle, article_id)
    if article is None:
        raise NewsNotFound(article_id)
    return article


async def get_news_article(db: AsyncSession, article_id: UUID, viewer: Viewer) -> NewsArticle:
    """Fetch one article, counting the read.

    Published articles get ``views = views + 1`` in the store and are reloaded
    inside the same transaction, so the caller sees its own increment.
    Unpublished articles are only returned to privileged viewers, and such
    previews are not counted. Everyone else gets ``NewsNotFound``.
    """
    bumped = (
        await db.execute(
            update(NewsArticle)
            .where(NewsArticle.id == article_id, _published())
            .values(views=NewsArticle.views + 1)
            .returning(NewsArticle.views)
            .execution_options(synchronize_session=False)
        )
    ).scalar_one_or_none()

    if bumped is not None:
        article = await db.get(NewsArticle, article_id, populate_existing=True)
        await db.commit()
        return article

    article = await db.get(NewsArticle, article_id) if viewer.is_privileged else None
    # the UPDATE matched nothing; close its transaction either way
    await db.commit()
    if article is None:
        raise NewsNotFound(article_id)
    return article


async def create_news(db: AsyncSession, payload: NewsCreate) -> NewsArticle:
    now = utcnow()
    data = payload.model_dump()
    if data["read_time"] is None:
        data["read_time"] = estimate_read_time(payload.content)

    article = NewsArticle(
        **data,
        views=0,
        published_at=now if payload.is_published else None,
        created_at=now,
        updated_at=now,
    )
    db.add(article)
    await db.commit()
    await db.refresh(article)
    logger.info("Created news article %s (published=%s)", article.id, article.is_published)
    return article


async def update_news(db: AsyncSession, article_id: UUID, payload: NewsUpdate) -> NewsArticle:
    article = await _get_existing(db, article_id)
    changes = payload.model_dump(exclude_unset=True)
    now = utcnow()

    if "content" in changes and "read_time" not in changes:
        changes["read_time"] = estimate_read_time(changes["content"])

    if "published_at" not in changes:
        if changes.get("is_published") is True and not article.is_published:
            changes["published_at"] = now
        elif changes.get("is_published") is False:
            changes["published_at"] = None

    published = changes.get("is_published", article.is_published)
    published_at = changes.get("published_at", article.published_at)
    if published != (published_at is not None):
        raise PublishStateConflict(
            "publishedAt must be set exactly when the article is published"
        )

    for field, value in changes.items():
        setattr(article, field, value)
    article.updated_at = now

    await db.commit()
    await db.refresh(article)
    logger.info("Updated news article %s fields=%s", article_id, sorted(changes))
    return article


async def delete_news(db: AsyncSession, article_id: UUID) -> None:
    article = await _get_existing(db, article_id)
    await db.delete(article)
    await db.commit()
    logger.info("Deleted news article %s", article_id)


async def publish_news(db: AsyncSession, article_id: UUID) -> NewsArticle:
    article = await _get_existing(db, article_id)
    now = utcnow()
    article.is_published = True
    article.published_at = now
    article.updated_at = now
    await db.commit()
    await db.refresh(article)
    logger.info("Published news article %s", article_id)
    return article


async def unpublish_news(db: AsyncSession, article_id: UUID) -> NewsArticle:
    article = await _get_existing(db, article_id)
    article.is_published = False
    article.published_at = None
    article.updated_at = utcnow()
    await db.commit()
    await db.refresh(article)
    logger.info("Unpublished news article %s", article_id)
    return article


# ---------------------------------------------------------------------------
# Curated views
# ---------------------------------------------------------------------------

async def _curated(db: AsyncSession, *conditions, order_by, limit: int) -> list[NewsArticle]:
    query = (
        select(NewsArticle)
        .where(_published(), *conditions)
        .order_by(order_by, NewsArticle.id.desc())
        .limit(limit)
    )
    return list((await db.execute(query)).scalars().all())


async def featured_news(db: AsyncSession, limit: int = 6) -> list[NewsArticle]:
    return await _curated(
        db, NewsArticle.is_featured.is_(True), order_by=NewsArticle.published_at.desc(), limit=limit
    )


async def news_by_category(db: AsyncSession, category: str, limit: int = 10) -> list[NewsArticle]:
    return await _curated(
        db, NewsArticle.category == category, order_by=NewsArticle.published_at.desc(), limit=limit
    )


async def news_by_author(db: AsyncSession, author: str, limit: int = 10) -> list[NewsArticle]:
    return await _curated(
        db,
        NewsArticle.author.icontains(author, autoescape=True),
        order_by=NewsArticle.published_at.desc(),
        limit=limit,
    )


async def most_viewed_news(db: AsyncSession, limit: int = 10) -> list[NewsArticle]:
    return await _curated(db, NewsArticle.views > 0, order_by=NewsArticle.views.desc(), limit=limit)


async def latest_news(db: AsyncSession, limit: int = 10) -> list[NewsArticle]:
    return await _curated(db, order_by=NewsArticle.published_at.desc(), limit=limit)
