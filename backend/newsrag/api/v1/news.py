"""News API - 3 read-only endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from newsrag.dependencies import get_db
from newsrag.repositories import article_repository
from newsrag.schemas.article import ArticleResponse

router = APIRouter()


# GET /news
@router.get("", response_model=list[ArticleResponse])
async def list_news(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    return await article_repository.list_articles(db, skip=skip, limit=limit)


# GET /news/featured
@router.get("/featured", response_model=list[ArticleResponse])
async def featured_news(db: AsyncSession = Depends(get_db)):
    return await article_repository.list_featured(db)


# GET /news/category/{category}
@router.get("/category/{category}", response_model=list[ArticleResponse])
async def news_by_category(category: str, db: AsyncSession = Depends(get_db)):
    return await article_repository.list_by_category(db, category)
