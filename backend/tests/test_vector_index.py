"""Tests for cosine similarity and the in-memory vector index."""
import pytest

from newsrag.exceptions import DimensionMismatch
from newsrag.retrieval.vector_index import Chunk, VectorIndex, cosine_similarity


# ── cosine_similarity ──


def test_cosine_is_symmetric():
    a = [0.3, -1.2, 4.0]
    b = [2.0, 0.5, 1.1]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_self_similarity_is_one():
    v = [0.2, 0.4, -0.7, 1.5]
    assert cosine_similarity(v, v) == pytest.approx(1.0)


def test_orthogonal_and_opposite_vectors():
    assert cosine_similarity([1.0, 0.0], [0.0, 3.0]) == pytest.approx(0.0)
    assert cosine_similarity([1.0, 2.0], [-1.0, -2.0]) == pytest.approx(-1.0)


def test_zero_vector_scores_zero():
    assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
    assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0


def test_cosine_dimension_mismatch():
    with pytest.raises(DimensionMismatch) as exc_info:
        cosine_similarity([1.0, 0.0], [1.0, 0.0, 0.0])
    assert exc_info.value.expected == 2
    assert exc_info.value.actual == 3


# ── VectorIndex ──


@pytest.fixture
def index():
    idx = VectorIndex()
    idx.add_text(1, "inflation", [1.0, 0.0, 0.0])
    idx.add_text(2, "mostly inflation", [0.9, 0.3, 0.0])
    idx.add_text(3, "chips", [0.0, 1.0, 0.0])
    idx.add_text(4, "inflation and chips", [0.7, 0.7, 0.0])
    return idx


def test_empty_index_returns_empty_list():
    assert VectorIndex().search([1.0, 0.0], 5) == []
    assert VectorIndex(dimension=3).search([1.0, 0.0, 0.0], 5) == []


def test_search_sorted_descending(index):
    results = index.search([1.0, 0.0, 0.0], 10)
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert [r.chunk.article_id for r in results] == [1, 2, 4]


def test_search_respects_threshold(index):
    results = index.search([1.0, 0.0, 0.0], 10)
    assert all(r.score > 0.5 for r in results)
    assert 3 not in [r.chunk.article_id for r in results]


def test_score_equal_to_threshold_is_excluded():
    idx = VectorIndex()
    idx.add_text(1, "edge", [1.0, 1.0, 1.0, 1.0])
    assert cosine_similarity([1.0, 0.0, 0.0, 0.0], [1.0, 1.0, 1.0, 1.0]) == 0.5
    assert idx.search([1.0, 0.0, 0.0, 0.0], 5) == []


def test_search_never_exceeds_k(index):
    assert len(index.search([1.0, 0.0, 0.0], 2)) == 2
    assert len(index.search([1.0, 0.0, 0.0], 1)) == 1
    assert index.search([1.0, 0.0, 0.0], 0) == []


def test_fewer_than_k_above_threshold(index):
    results = index.search([0.0, 0.0, 1.0], 5)
    assert results == []


def test_ties_keep_insertion_order():
    idx = VectorIndex()
    for article_id in (7, 3, 9):
        idx.add_text(article_id, f"article {article_id}", [1.0, 1.0])
    results = idx.search([1.0, 1.0], 2)
    assert [r.chunk.article_id for r in results] == [7, 3]


def test_dimension_fixed_by_first_chunk():
    idx = VectorIndex()
    idx.add_text(1, "a", [1.0, 0.0])
    assert idx.dimension == 2
    with pytest.raises(DimensionMismatch):
        idx.add_text(2, "b", [1.0, 0.0, 0.0])
    assert len(idx) == 1


def test_query_dimension_mismatch_is_fatal(index):
    with pytest.raises(DimensionMismatch):
        index.search([1.0, 0.0], 3)


def test_add_text_assigns_sequential_ids():
    idx = VectorIndex(dimension=2)
    first = idx.add_text(1, "a", [1.0, 0.0])
    second = idx.add_text(1, "b", [0.0, 1.0])
    assert (first.id, second.id) == (1, 2)
    idx.add(Chunk(id=10, article_id=2, text="c", embedding=(1.0, 1.0)))
    assert idx.add_text(2, "d", [1.0, 1.0]).id == 11


def test_chunks_are_immutable(index):
    chunk = index.chunks[0]
    with pytest.raises(AttributeError):
        chunk.text = "changed"


def test_clear(index):
    index.clear()
    assert len(index) == 0
    assert index.search([1.0, 0.0, 0.0], 5) == []
