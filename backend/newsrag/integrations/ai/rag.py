"""RAG (Retrieval-Augmented Generation) pipeline for news questions.

Embeds the question, retrieves similar article chunks from the in-memory
VectorIndex, and asks the generation gateway to answer strictly from them.
"""
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

from newsrag.exceptions import EmbeddingUnavailable
from newsrag.integrations.ai.embeddings import EmbeddingGateway
from newsrag.integrations.ai.llm_client import GenerationGateway
from newsrag.retrieval.vector_index import ScoredChunk, VectorIndex
from newsrag.schemas.chat import ChatTurn
from newsrag.utils.helpers import MonotonicClock
from newsrag.utils.session_cache import SessionCache

logger = logging.getLogger(__name__)

NO_CONTEXT_MESSAGE = (
    "I'm sorry, but I couldn't find any relevant information to answer your question. "
    "Please try asking a different question about current news events."
)
ERROR_MESSAGE = (
    "I encountered an error while trying to answer your question. Please try again later."
)

ANSWER_PROMPT_TEMPLATE = """You are a helpful news assistant that answers questions based on the provided news articles.
Be informative, accurate, and objective. Only respond with information that is supported by the provided context.
If you don't know the answer, say "I don't know" clearly rather than making something up.

Context from news articles:
{context}

User Question: {query}

Provide a comprehensive, factual response to the question above using only the information from the context.
Do not invent or add information that is not in the provided context.
"""


class Article(Protocol):
    id: int
    title: str


ArticleLookup = Callable[[int], Awaitable[Article | None]]


@dataclass
class RAGAnswer:
    message: str
    sources: list[str] = field(default_factory=list)


def build_prompt(context: str, query: str) -> str:
    return ANSWER_PROMPT_TEMPLATE.format(context=context, query=query)


class RAGOrchestrator:
    """End-to-end answer pipeline with early exits.

    Steps:
        1. Embed the query (unavailable → no-context answer)
        2. Search the index for top_k chunks (none → no-context answer)
        3. Resolve distinct article ids, dropping unknown articles
        4. Join chunk texts into grounding context
        5. Build the grounded prompt and generate
        6. Record the turn in the session cache

    answer() never raises; unexpected errors become ERROR_MESSAGE.
    """

    def __init__(
        self,
        index: VectorIndex,
        embedder: EmbeddingGateway,
        llm: GenerationGateway,
        article_lookup: ArticleLookup,
        cache: SessionCache | None = None,
        top_k: int = 5,
    ):
        self.index = index
        self.embedder = embedder
        self.llm = llm
        self.article_lookup = article_lookup
        self.cache = cache
        self.top_k = top_k
        self._clock = MonotonicClock()

    async def answer(self, session_id: str, query: str) -> RAGAnswer:
        try:
            return await self._answer(session_id, query)
        except Exception:
            logger.exception("Error processing RAG query for session %s", session_id)
            return RAGAnswer(message=ERROR_MESSAGE, sources=[])

    async def _answer(self, session_id: str, query: str) -> RAGAnswer:
        try:
            query_embedding = await self.embedder.embed(query)
        except EmbeddingUnavailable as exc:
            logger.warning("Query embedding unavailable for session %s: %s", session_id, exc)
            return RAGAnswer(message=NO_CONTEXT_MESSAGE, sources=[])

        results = self.index.search(query_embedding, self.top_k)
        if not results:
            logger.info("No chunks above threshold for session %s", session_id)
            return RAGAnswer(message=NO_CONTEXT_MESSAGE, sources=[])

        articles = await self._resolve_articles(results)
        context = "\n\n".join(result.chunk.text for result in results)

        response = await self.llm.complete(build_prompt(context, query))
        sources = [article.title for article in articles]

        await self._remember(session_id, query, response, sources)
        logger.info(
            "Answered session %s from %d chunks across %d articles",
            session_id, len(results), len(sources),
        )
        return RAGAnswer(message=response, sources=sources)

    async def _resolve_articles(self, results: list[ScoredChunk]) -> list[Article]:
        # Sources keep the order in which articles were first referenced.
        article_ids = list(dict.fromkeys(result.chunk.article_id for result in results))
        articles: list[Article] = []
        for article_id in article_ids:
            article = await self.article_lookup(article_id)
            if article is None:
                logger.warning("Article %s referenced by the index was not found", article_id)
                continue
            articles.append(article)
        return articles

    async def _remember(self, session_id: str, query: str, response: str, sources: list[str]) -> None:
        if self.cache is None:
            return
        turn = ChatTurn(query=query, response=response, sources=sources, timestamp=self._clock.now())
        await self.cache.add_chat_turn(session_id, turn.model_dump(mode="json"))
