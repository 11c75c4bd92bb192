"""Pydantic schemas for news articles."""
from datetime import datetime

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

from newsrag.schemas.common import CamelModel


class ArticleResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    title: str
    content: str
    summary: str | None = None
    category: str | None = None
    source: str | None = None
    url: str | None = None
    image_url: str | None = None
    published_at: datetime | None = None
    created_at: datetime | None = None
