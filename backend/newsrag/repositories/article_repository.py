"""News article data access layer."""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsrag.models.article import NewsArticle


async def get_by_id(db: AsyncSession, article_id: int) -> NewsArticle | None:
    return await db.get(NewsArticle, article_id)


async def list_articles(db: AsyncSession, *, skip: int = 0, limit: int = 100) -> list[NewsArticle]:
    rows = (
        await db.execute(select(NewsArticle).order_by(NewsArticle.id).offset(skip).limit(limit))
    ).scalars().all()
    return list(rows)


async def list_featured(db: AsyncSession, limit: int = 3) -> list[NewsArticle]:
    rows = (
        await db.execute(
            select(NewsArticle)
            .order_by(NewsArticle.published_at.desc().nulls_last(), NewsArticle.id.desc())
            .limit(limit)
        )
    ).scalars().all()
    return list(rows)


async def list_by_category(db: AsyncSession, category: str) -> list[NewsArticle]:
    rows = (
        await db.execute(
            select(NewsArticle).where(NewsArticle.category == category).order_by(NewsArticle.id)
        )
    ).scalars().all()
    return list(rows)


async def count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(NewsArticle))).scalar() or 0


async def create(db: AsyncSession, article: NewsArticle) -> NewsArticle:
    db.add(article)
    await db.flush()
    return article
