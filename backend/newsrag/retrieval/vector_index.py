"""In-memory vector index with exact cosine-similarity search.

Chunks are kept in insertion order and every query is a linear scan. The
corpus is bounded by ingestion volume, so no approximate structure is needed.
"""
import heapq
import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass

from newsrag.exceptions import DimensionMismatch

logger = logging.getLogger(__name__)

DEFAULT_SIMILARITY_THRESHOLD = 0.5


@dataclass(frozen=True)
class Chunk:
    """A span of article text paired with its embedding."""

    id: int
    article_id: int
    text: str
    embedding: tuple[float, ...]


@dataclass(frozen=True)
class ScoredChunk:
    chunk: Chunk
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Dot product over the product of Euclidean norms.

    Returns 0.0 when either vector has zero norm. Raises DimensionMismatch
    when the vectors have different lengths.
    """
    if len(a) != len(b):
        raise DimensionMismatch(len(a), len(b))

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class VectorIndex:
    """Stores (chunk id, article id, text, embedding) and answers top-k queries.

    The dimension is fixed by the constructor or, if omitted, by the first
    chunk added. Any later vector of a different length is rejected.
    """

    def __init__(
        self,
        dimension: int | None = None,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    ):
        self.dimension = dimension
        self.threshold = threshold
        self._chunks: list[Chunk] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return tuple(self._chunks)

    def add(self, chunk: Chunk) -> Chunk:
        self._check_dimension(len(chunk.embedding))
        if self.dimension is None:
            self.dimension = len(chunk.embedding)
        self._chunks.append(chunk)
        self._next_id = max(self._next_id, chunk.id + 1)
        return chunk

    def add_text(self, article_id: int, text: str, embedding: Sequence[float]) -> Chunk:
        """Create a chunk with the next free id and add it."""
        chunk = Chunk(
            id=self._next_id,
            article_id=article_id,
            text=text,
            embedding=tuple(float(v) for v in embedding),
        )
        return self.add(chunk)

    def search(self, query_embedding: Sequence[float], k: int) -> list[ScoredChunk]:
        """Return at most k chunks scoring above the threshold, best first.

        Ties keep insertion order. An empty index yields an empty list.
        """
        if k <= 0 or not self._chunks:
            return []
        self._check_dimension(len(query_embedding))

        candidates: list[tuple[float, int, Chunk]] = []
        for position, chunk in enumerate(self._chunks):
            score = cosine_similarity(query_embedding, chunk.embedding)
            if score > self.threshold:
                candidates.append((-score, position, chunk))

        best = heapq.nsmallest(k, candidates, key=lambda item: (item[0], item[1]))
        logger.debug(
            "Vector search scanned %d chunks, %d above threshold, returning %d",
            len(self._chunks), len(candidates), len(best),
        )
        return [ScoredChunk(chunk=chunk, score=-neg_score) for neg_score, _, chunk in best]

    def clear(self) -> None:
        self._chunks.clear()
        self._next_id = 1

    def _check_dimension(self, size: int) -> None:
        if self.dimension is not None and size != self.dimension:
            raise DimensionMismatch(self.dimension, size)
