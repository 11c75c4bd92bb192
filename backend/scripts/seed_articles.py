"""Load news articles into the database.

Usage (from backend/ directory):
    python scripts/seed_articles.py                    # built-in sample articles
    python scripts/seed_articles.py articles.json      # list of article objects

Each JSON object needs ``title`` and ``content``; ``summary``, ``category``,
``source``, ``url`` and ``image_url`` are optional. The vector index is built
from the database at server startup, so restart the server afterwards.
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path

# Allow imports from backend/newsrag/
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy.ext.asyncio import AsyncSession

from newsrag.config import settings
from newsrag.database import create_engine, create_session_factory, create_tables
from newsrag.models.article import NewsArticle
from newsrag.models.base import utcnow
from newsrag.repositories import article_repository
from newsrag.services.indexing_service import seed_sample_articles

_FIELDS = ("title", "content", "summary", "category", "source", "url", "image_url")


async def load_file(session: AsyncSession, path: Path) -> int:
    records = json.loads(path.read_text(encoding="utf-8"))
    for record in records:
        article = NewsArticle(**{k: record.get(k) for k in _FIELDS}, published_at=utcnow())
        await article_repository.create(session, article)
    return len(records)


async def main(path: Path | None) -> None:
    engine = create_engine(settings.DATABASE_URL)
    await create_tables(engine)
    async_session = create_session_factory(engine)
    async with async_session() as session:
        if path is None:
            created = len(await seed_sample_articles(session))
        else:
            created = await load_file(session, path)
        await session.commit()
    await engine.dispose()
    print(f"Inserted {created} articles")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("file", nargs="?", type=Path, default=None)
    args = parser.parse_args()
    asyncio.run(main(args.file))
