import math
from typing import Literal
from uuid import UUID

import redis.asyncio as redis
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas import (
    MessageResponse,
    NewsCollectionResponse,
    NewsCreate,
    NewsListResponse,
    NewsOut,
    NewsResponse,
    NewsUpdate,
    Pagination,
)
from app.security import Viewer, get_viewer, require_privileged
from app.services import news as svc
from app.services.cache import cache_view, curated_key, get_cached_view, get_redis, invalidate_curated

router = APIRouter(prefix="/news", tags=["news"])


def _serialize(rows) -> list[dict]:
    return [NewsOut.model_validate(r).model_dump(mode="json", by_alias=True) for r in rows]


async def _curated_response(key: str, r: redis.Redis | None, load) -> NewsCollectionResponse:
    items = await get_cached_view(key, r)
    if items is None:
        items = _serialize(await load())
        await cache_view(key, items, r)
    return NewsCollectionResponse(data=items)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

@router.get("", response_model=NewsListResponse)
async def list_news(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=0, le=100),
    search: str | None = None,
    category: str | None = None,
    author: str | None = None,
    sort_by: str = Query(svc.DEFAULT_SORT, alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    rows, total = await svc.list_news(
        db,
        page=page,
        limit=limit,
        search=search,
        category=category,
        author=author,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    total_pages = math.ceil(total / limit) if limit else 0

    return NewsListResponse(
        data=[NewsOut.model_validate(r) for r in rows],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=total_pages),
    )


# ---------------------------------------------------------------------------
# Curated views (static paths, registered before /{article_id})
# ---------------------------------------------------------------------------

@router.get("/featured", response_model=NewsCollectionResponse)
async def featured_news(
    limit: int = Query(6, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
):
    return await _curated_response(
        curated_key("featured", limit), r, lambda: svc.featured_news(db, limit=limit)
    )


@router.get("/latest", response_model=NewsCollectionResponse)
async def latest_news(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
):
    return await _curated_response(
        curated_key("latest", limit), r, lambda: svc.latest_news(db, limit=limit)
    )


@router.get("/most-viewed", response_model=NewsCollectionResponse)
async def most_viewed_news(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
):
    return await _curated_response(
        curated_key("most-viewed", limit), r, lambda: svc.most_viewed_news(db, limit=limit)
    )


@router.get("/category/{category}", response_model=NewsCollectionResponse)
async def news_by_category(
    category: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
):
    return await _curated_response(
        curated_key("category", limit, category),
        r,
        lambda: svc.news_by_category(db, category, limit=limit),
    )


@router.get("/author/{author}", response_model=NewsCollectionResponse)
async def news_by_author(
    author: str,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
):
    return await _curated_response(
        curated_key("author", limit, author),
        r,
        lambda: svc.news_by_author(db, author, limit=limit),
    )


# ---------------------------------------------------------------------------
# Single article
# ---------------------------------------------------------------------------

@router.get("/{article_id}", response_model=NewsResponse)
async def get_news_article(
    article_id: UUID,
    db: AsyncSession = Depends(get_db),
    viewer: Viewer = Depends(get_viewer),
):
    article = await svc.get_news_article(db, article_id, viewer)
    return NewsResponse(data=NewsOut.model_validate(article))


@router.post("", response_model=NewsResponse, status_code=status.HTTP_201_CREATED)
async def create_news(
    payload: NewsCreate,
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
    _: Viewer = Depends(require_privileged),
):
    article = await svc.create_news(db, payload)
    await invalidate_curated(r)
    return NewsResponse(message="News article created successfully", data=NewsOut.model_validate(article))


@router.put("/{article_id}", response_model=NewsResponse)
async def update_news(
    article_id: UUID,
    payload: NewsUpdate,
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
    _: Viewer = Depends(require_privileged),
):
    article = await svc.update_news(db, article_id, payload)
    await invalidate_curated(r)
    return NewsResponse(message="News article updated successfully", data=NewsOut.model_validate(article))


@router.delete("/{article_id}", response_model=MessageResponse)
async def delete_news(
    article_id: UUID,
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
    _: Viewer = Depends(require_privileged),
):
    await svc.delete_news(db, article_id)
    await invalidate_curated(r)
    return MessageResponse(message="News article deleted successfully")


@router.put("/{article_id}/publish", response_model=NewsResponse)
async def publish_news(
    article_id: UUID,
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
    _: Viewer = Depends(require_privileged),
):
    article = await svc.publish_news(db, article_id)
    await invalidate_curated(r)
    return NewsResponse(message="News article published successfully", data=NewsOut.model_validate(article))


@router.put("/{article_id}/unpublish", response_model=NewsResponse)
async def unpublish_news(
    article_id: UUID,
    db: AsyncSession = Depends(get_db),
    r: redis.Redis | None = Depends(get_redis),
    _: Viewer = Depends(require_privileged),
):
    article = await svc.unpublish_news(db, article_id)
    await invalidate_curated(r)
    return NewsResponse(message="News article unpublished successfully", data=NewsOut.model_validate(article))
