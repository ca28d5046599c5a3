from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

CAMEL_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class NewsOut(BaseModel):
    id: UUID
    title: str
    excerpt: str
    content: str
    author: str
    category: str
    is_published: bool
    is_featured: bool
    views: int
    read_time: int
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {**CAMEL_CONFIG, "from_attributes": True}


class NewsCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    excerpt: str = Field(min_length=1)
    content: str = Field(min_length=1)
    author: str = Field(min_length=1, max_length=255)
    category: str = Field(min_length=1, max_length=100)
    is_published: bool = False
    is_featured: bool = False
    read_time: int | None = Field(default=None, ge=1)

    model_config = CAMEL_CONFIG


class NewsUpdate(BaseModel):
    """Partial update. Only fields the caller actually sent are applied."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    excerpt: str | None = Field(default=None, min_length=1)
    content: str | None = Field(default=None, min_length=1)
    author: str | None = Field(default=None, min_length=1, max_length=255)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    is_published: bool | None = None
    is_featured: bool | None = None
    read_time: int | None = Field(default=None, ge=1)
    published_at: datetime | None = None

    model_config = CAMEL_CONFIG

    @model_validator(mode="after")
    def _reject_explicit_nulls(self):
        # published_at is the only column that may be cleared through this payload
        for name in self.model_fields_set:
            if name != "published_at" and getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} cannot be null")
        return self


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    model_config = CAMEL_CONFIG


class NewsListResponse(BaseModel):
    success: bool = True
    data: list[NewsOut]
    pagination: Pagination


class NewsCollectionResponse(BaseModel):
    success: bool = True
    data: list[NewsOut]


class NewsResponse(BaseModel):
    success: bool = True
    message: str | None = None
    data: NewsOut


class MessageResponse(BaseModel):
    success: bool = True
    message: str
