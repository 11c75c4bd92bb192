"""Process-wide service graph, built once per application instance."""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from newsrag.api.websocket import ConnectionManager
from newsrag.config import Settings
from newsrag.database import create_engine, create_session_factory, create_tables
from newsrag.integrations.ai.embeddings import EmbeddingGateway, build_embedding_gateway
from newsrag.integrations.ai.llm_client import GenerationGateway, build_generation_gateway
from newsrag.integrations.ai.rag import RAGOrchestrator
from newsrag.models.article import NewsArticle
from newsrag.realtime.admission import ConnectionAttemptLimiter
from newsrag.repositories import article_repository
from newsrag.retrieval.vector_index import VectorIndex
from newsrag.services.chat_service import ChatService
from newsrag.services.indexing_service import rebuild_index
from newsrag.utils.session_cache import SessionCache

logger = logging.getLogger(__name__)


@dataclass
class Services:
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cache: SessionCache
    index: VectorIndex
    embedder: EmbeddingGateway
    llm: GenerationGateway
    orchestrator: RAGOrchestrator
    chat: ChatService
    transport: ConnectionManager

    async def aclose(self) -> None:
        await self.transport.stop()
        await self.cache.close()
        await self.engine.dispose()


ServicesBuilder = Callable[[], Awaitable[Services]]


def article_lookup(session_factory: async_sessionmaker[AsyncSession]):
    """Bind the durable article store as the orchestrator's lookup function."""

    async def lookup(article_id: int) -> NewsArticle | None:
        async with session_factory() as db:
            return await article_repository.get_by_id(db, article_id)

    return lookup


async def build_services(
    settings: Settings,
    *,
    engine: AsyncEngine | None = None,
    cache: SessionCache | None = None,
    embedder: EmbeddingGateway | None = None,
    llm: GenerationGateway | None = None,
    limiter: ConnectionAttemptLimiter | None = None,
    index: VectorIndex | None = None,
    load_index: bool = True,
) -> Services:
    """Wire every component from settings; keyword arguments replace single parts."""
    engine = engine or create_engine(settings.DATABASE_URL)
    await create_tables(engine)
    session_factory = create_session_factory(engine)

    if cache is None:
        cache = await SessionCache.connect(
            settings.REDIS_URL,
            history_ttl=settings.CHAT_HISTORY_TTL,
            max_turns=settings.CHAT_HISTORY_MAX_TURNS,
        )
    embedder = embedder or build_embedding_gateway(settings)
    llm = llm or build_generation_gateway(settings)
    if index is None:
        index = VectorIndex(dimension=embedder.dimension, threshold=settings.SIMILARITY_THRESHOLD)

    if load_index:
        await rebuild_index(
            session_factory,
            index,
            embedder,
            chunk_size=settings.CHUNK_SIZE,
            overlap=settings.CHUNK_OVERLAP,
            seed_samples=settings.is_development,
        )

    orchestrator = RAGOrchestrator(
        index=index,
        embedder=embedder,
        llm=llm,
        article_lookup=article_lookup(session_factory),
        cache=cache,
        top_k=settings.RAG_TOP_K,
    )
    chat = ChatService(session_factory, orchestrator, cache)
    transport = ConnectionManager(
        chat,
        limiter or ConnectionAttemptLimiter(settings.WS_CONNECT_LIMIT, settings.WS_CONNECT_WINDOW),
        heartbeat_interval=settings.WS_HEARTBEAT_INTERVAL,
        max_missed_pongs=settings.WS_MAX_MISSED_PONGS,
        max_connections=settings.WS_MAX_CONNECTIONS,
        inbox_size=settings.WS_INBOX_SIZE,
        drain_timeout=settings.WS_DRAIN_TIMEOUT,
    )
    logger.info(
        "Services ready: cache=%s, index=%d chunks", cache.tier.name, len(index),
    )
    return Services(
        engine=engine,
        session_factory=session_factory,
        cache=cache,
        index=index,
        embedder=embedder,
        llm=llm,
        orchestrator=orchestrator,
        chat=chat,
        transport=transport,
    )
