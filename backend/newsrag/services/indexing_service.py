"""Build the in-memory vector index from stored news articles."""
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsrag.exceptions import EmbeddingUnavailable
from newsrag.integrations.ai.embeddings import EmbeddingGateway, chunk_text
from newsrag.models.article import NewsArticle
from newsrag.repositories import article_repository
from newsrag.retrieval.vector_index import VectorIndex

logger = logging.getLogger(__name__)

# Small article set loaded in development mode when the store is empty.
SAMPLE_ARTICLES: list[dict] = [
    {
        "title": "Inflation eases in March as energy prices fall",
        "content": (
            "Reuters reports inflation eased in March. Consumer prices rose 2.4% from a year "
            "earlier, down from 2.8% in February, as gasoline and heating costs declined. "
            "Economists said the slowdown gives the central bank room to hold rates steady."
        ),
        "summary": "Annual inflation slowed to 2.4% in March.",
        "category": "business",
        "source": "Reuters",
    },
    {
        "title": "Chipmakers expand European production",
        "content": (
            "Several semiconductor manufacturers announced new fabrication plants in Germany "
            "and Ireland, citing subsidies and demand for automotive chips. The plants are "
            "expected to begin production within three years."
        ),
        "summary": "New chip fabs are planned in Germany and Ireland.",
        "category": "technology",
        "source": "Reuters",
    },
    {
        "title": "Health agency approves updated flu vaccine",
        "content": (
            "Regulators approved an updated influenza vaccine formulation for the coming "
            "season. Officials recommended annual vaccination for everyone over six months, "
            "with priority for older adults and health workers."
        ),
        "summary": "An updated flu vaccine was approved for the coming season.",
        "category": "health",
        "source": "Reuters",
    },
]


async def index_article(
    index: VectorIndex,
    embedder: EmbeddingGateway,
    article: NewsArticle,
    chunk_size: int = 500,
    overlap: int = 100,
) -> int:
    """Chunk an article, embed each chunk and add it to the index.

    Chunks whose embedding is unavailable are skipped. Returns the number of
    chunks indexed.
    """
    full_text = f"{article.title}\n\n{article.content}".strip()
    indexed = 0
    for chunk in chunk_text(full_text, chunk_size=chunk_size, overlap=overlap):
        try:
            embedding = await embedder.embed(chunk)
        except EmbeddingUnavailable as exc:
            logger.warning("Skipping chunk of article %s: %s", article.id, exc)
            continue
        index.add_text(article.id, chunk, embedding)
        indexed += 1
    return indexed


async def seed_sample_articles(db: AsyncSession) -> list[NewsArticle]:
    """Insert SAMPLE_ARTICLES when the article table is empty."""
    if await article_repository.count(db) > 0:
        return []
    created = []
    for data in SAMPLE_ARTICLES:
        article = NewsArticle(**data, published_at=datetime.now(timezone.utc))
        created.append(await article_repository.create(db, article))
    logger.info("Seeded %d sample articles", len(created))
    return created


async def rebuild_index(
    session_factory: async_sessionmaker[AsyncSession],
    index: VectorIndex,
    embedder: EmbeddingGateway,
    chunk_size: int = 500,
    overlap: int = 100,
    seed_samples: bool = False,
) -> int:
    """Load every stored article into an empty index. Returns chunks indexed."""
    async with session_factory() as db:
        if seed_samples:
            await seed_sample_articles(db)
            await db.commit()
        articles = await article_repository.list_articles(db, limit=10_000)

    index.clear()
    total = 0
    for article in articles:
        total += await index_article(index, embedder, article, chunk_size, overlap)
    logger.info("Vector index built: %d chunks from %d articles", total, len(articles))
    return total
