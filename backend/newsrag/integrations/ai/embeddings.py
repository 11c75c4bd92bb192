"""Embedding gateway: remote providers with a deterministic development fallback."""
import logging
from collections import Counter
from collections.abc import Sequence
from typing import Protocol

import httpx

from newsrag.config import Settings
from newsrag.exceptions import EmbeddingUnavailable
from newsrag.integrations.resilience import CircuitBreaker, retry_with_backoff

logger = logging.getLogger(__name__)


def chunk_text(text: str, chunk_size: int = 500, overlap: int = 100) -> list[str]:
    """Split text into overlapping chunks.

    Args:
        text: Full text to split
        chunk_size: Max characters per chunk
        overlap: Character overlap between chunks

    Returns:
        List of text chunks
    """
    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")
    if len(text) <= chunk_size:
        return [text]

    chunks = []
    start = 0
    while start < len(text):
        end = start + chunk_size
        chunks.append(text[start:end])
        if end >= len(text):
            break
        start += chunk_size - overlap

    return chunks


class EmbeddingStrategy(Protocol):
    name: str

    async def embed(self, text: str) -> list[float]: ...


class JinaEmbeddingStrategy:
    """Jina Embeddings HTTP API."""

    name = "jina"
    API_URL = "https://api.jina.ai/v1/embeddings"

    def __init__(
        self,
        api_key: str,
        model: str = "jina-embeddings-v2-base-en",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._transport = transport

    async def embed(self, text: str) -> list[float]:
        if not self.api_key:
            raise EmbeddingUnavailable("JINA_API_KEY is not set")

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await retry_with_backoff(
                self._post, client, text, max_retries=2, backoff_base=0.5,
            )

        try:
            return [float(v) for v in response.json()["data"][0]["embedding"]]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise EmbeddingUnavailable("Invalid response from embedding provider") from exc

    async def _post(self, client: httpx.AsyncClient, text: str) -> httpx.Response:
        response = await client.post(
            self.API_URL,
            json={"input": text, "model": self.model},
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        response.raise_for_status()
        return response


class OpenAIEmbeddingStrategy:
    """OpenAI embeddings endpoint via the official SDK."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "text-embedding-3-small", dimension: int | None = None):
        self.api_key = api_key
        self.model = model
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        if not self.api_key:
            raise EmbeddingUnavailable("OPENAI_API_KEY is not set")

        import openai

        client = openai.AsyncOpenAI(api_key=self.api_key)
        kwargs = {"dimensions": self.dimension} if self.dimension else {}
        try:
            response = await client.embeddings.create(
                model=self.model,
                input=text[:8000],  # Token limit safety
                **kwargs,
            )
            return list(response.data[0].embedding)
        finally:
            await client.close()


class CharFrequencyEmbedding:
    """Deterministic local embedding for development mode.

    Builds a character-frequency histogram over lowercased ASCII characters and
    folds it into the configured dimension. Same text always yields the same
    vector. Not suitable for production retrieval.
    """

    name = "char-frequency"

    def __init__(self, dimension: int = 128):
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension

    async def embed(self, text: str) -> list[float]:
        return self.vector(text)

    def vector(self, text: str) -> list[float]:
        embedding = [0.0] * self.dimension
        if not text:
            return embedding

        length = len(text)
        for char, freq in sorted(Counter(text.lower()).items()):
            code = ord(char)
            if code < 128:
                embedding[code % self.dimension] += freq / length
        return embedding


class EmbeddingGateway:
    """Try each provider strategy in order; fall back locally only when configured.

    The fallback is set only in development mode. Everywhere else a provider
    failure surfaces as EmbeddingUnavailable so retrieval quality never degrades
    silently.
    """

    def __init__(
        self,
        strategies: Sequence[EmbeddingStrategy],
        fallback: EmbeddingStrategy | None = None,
        dimension: int | None = None,
        timeout: float = 10.0,
    ):
        self.strategies = list(strategies)
        self.fallback = fallback
        self.dimension = dimension
        self.timeout = timeout
        self._breakers = {s.name: CircuitBreaker(f"embedding:{s.name}") for s in self.strategies}

    async def embed(self, text: str) -> list[float]:
        for strategy in self.strategies:
            breaker = self._breakers[strategy.name]
            try:
                vector = await breaker.call(strategy.embed, text, timeout=self.timeout)
            except Exception as exc:
                logger.warning("Embedding provider %s failed: %r", strategy.name, exc)
                continue

            if self.dimension is not None and len(vector) != self.dimension:
                logger.warning(
                    "Embedding provider %s returned %d dimensions, expected %d",
                    strategy.name, len(vector), self.dimension,
                )
                continue
            return vector

        if self.fallback is not None:
            logger.warning("Using fallback embedding generation (%s)", self.fallback.name)
            return await self.fallback.embed(text)

        raise EmbeddingUnavailable("No embedding provider available")


def build_embedding_gateway(settings: Settings) -> EmbeddingGateway:
    """Wire the configured provider, plus the local fallback in development mode."""
    providers: dict[str, EmbeddingStrategy] = {
        "jina": JinaEmbeddingStrategy(
            api_key=settings.JINA_API_KEY,
            model=settings.EMBEDDING_MODEL,
            timeout=settings.EMBEDDING_TIMEOUT,
        ),
        "openai": OpenAIEmbeddingStrategy(
            api_key=settings.OPENAI_API_KEY,
            model=settings.EMBEDDING_MODEL,
            dimension=settings.EMBEDDING_DIMENSION,
        ),
    }
    if settings.EMBEDDING_PROVIDER not in providers:
        raise ValueError(f"Unsupported embedding provider: {settings.EMBEDDING_PROVIDER}")

    fallback = CharFrequencyEmbedding(settings.EMBEDDING_DIMENSION) if settings.is_development else None
    return EmbeddingGateway(
        strategies=[providers[settings.EMBEDDING_PROVIDER]],
        fallback=fallback,
        dimension=settings.EMBEDDING_DIMENSION,
        timeout=settings.EMBEDDING_TIMEOUT,
    )
