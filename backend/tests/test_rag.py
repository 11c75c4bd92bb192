"""Tests for the RAG answer pipeline."""
from types import SimpleNamespace

import pytest

from newsrag.integrations.ai.embeddings import EmbeddingGateway
from newsrag.integrations.ai.llm_client import GenerationGateway
from newsrag.integrations.ai.rag import ERROR_MESSAGE, NO_CONTEXT_MESSAGE, RAGOrchestrator, build_prompt
from newsrag.retrieval.vector_index import Chunk, VectorIndex
from newsrag.utils.session_cache import SessionCache

from tests.conftest import INFLATION_TITLE, FailingEmbedding, StaticEmbedding, StaticGeneration

ARTICLES = {
    1: SimpleNamespace(id=1, title=INFLATION_TITLE),
    2: SimpleNamespace(id=2, title="Chipmakers expand European production"),
}


async def lookup(article_id: int):
    return ARTICLES.get(article_id)


def make_orchestrator(index, query_vector, llm=None, cache=None, article_lookup=lookup):
    return RAGOrchestrator(
        index=index,
        embedder=EmbeddingGateway([StaticEmbedding(query_vector)]),
        llm=GenerationGateway([llm or StaticGeneration()]),
        article_lookup=article_lookup,
        cache=cache,
        top_k=5,
    )


@pytest.fixture
def index():
    idx = VectorIndex(dimension=3)
    idx.add(Chunk(id=1, article_id=1, text="Reuters reports inflation eased in March.", embedding=(1.0, 0.0, 0.0)))
    return idx


async def test_relevant_chunk_yields_sourced_answer(index):
    llm = StaticGeneration("Inflation eased in March.")
    rag = make_orchestrator(index, [0.9, 0.1, 0.0], llm=llm)

    result = await rag.answer("s1", "What happened to inflation?")

    assert result.message == "Inflation eased in March."
    assert result.sources == [INFLATION_TITLE]
    assert "Reuters reports inflation eased in March." in llm.prompts[0]
    assert "What happened to inflation?" in llm.prompts[0]


async def test_empty_index_gives_fixed_no_context_answer():
    llm = StaticGeneration()
    rag = make_orchestrator(VectorIndex(), [1.0, 0.0, 0.0], llm=llm)

    result = await rag.answer("s1", "Anything new?")

    assert result.message == NO_CONTEXT_MESSAGE
    assert result.sources == []
    assert llm.prompts == []


async def test_nothing_above_threshold_gives_no_context_answer(index):
    rag = make_orchestrator(index, [0.0, 1.0, 0.0])
    result = await rag.answer("s1", "Tell me about chips")
    assert result.message == NO_CONTEXT_MESSAGE
    assert result.sources == []


async def test_embedding_unavailable_never_calls_generation(index):
    llm = StaticGeneration()
    rag = RAGOrchestrator(
        index=index,
        embedder=EmbeddingGateway([FailingEmbedding()]),
        llm=GenerationGateway([llm]),
        article_lookup=lookup,
    )

    result = await rag.answer("s1", "What happened to inflation?")

    assert result.message == NO_CONTEXT_MESSAGE
    assert result.sources == []
    assert llm.prompts == []


async def test_sources_deduplicated_in_first_reference_order():
    idx = VectorIndex(dimension=2)
    idx.add_text(2, "chips one", [1.0, 0.1])
    idx.add_text(1, "inflation", [1.0, 0.2])
    idx.add_text(2, "chips two", [1.0, 0.3])
    llm = StaticGeneration()
    rag = make_orchestrator(idx, [1.0, 0.0], llm=llm)

    result = await rag.answer("s1", "query")

    assert result.sources == ["Chipmakers expand European production", INFLATION_TITLE]
    assert "chips one\n\ninflation\n\nchips two" in llm.prompts[0]


async def test_unknown_article_is_dropped():
    idx = VectorIndex(dimension=2)
    idx.add_text(99, "orphan chunk", [1.0, 0.0])
    idx.add_text(1, "inflation", [1.0, 0.1])
    rag = make_orchestrator(idx, [1.0, 0.0])

    result = await rag.answer("s1", "query")

    assert result.sources == [INFLATION_TITLE]
    assert result.message


async def test_unexpected_error_becomes_error_answer(index):
    async def broken_lookup(article_id):
        raise RuntimeError("article store down")

    rag = make_orchestrator(index, [1.0, 0.0, 0.0], article_lookup=broken_lookup)
    result = await rag.answer("s1", "What happened to inflation?")

    assert result.message == ERROR_MESSAGE
    assert result.sources == []


async def test_query_dimension_mismatch_becomes_error_answer(index):
    rag = make_orchestrator(index, [1.0, 0.0])
    result = await rag.answer("s1", "query")
    assert result.message == ERROR_MESSAGE


async def test_turns_cached_newest_first(index):
    cache = SessionCache()
    rag = make_orchestrator(index, [1.0, 0.0, 0.0], cache=cache)

    await rag.answer("s1", "first question")
    await rag.answer("s1", "second question")

    turns = await cache.get_chat_turns("s1")
    assert [t["query"] for t in turns] == ["second question", "first question"]
    assert turns[0]["sources"] == [INFLATION_TITLE]
    assert all("timestamp" in t for t in turns)


async def test_no_context_answer_is_not_cached():
    cache = SessionCache()
    rag = make_orchestrator(VectorIndex(), [1.0, 0.0, 0.0], cache=cache)
    await rag.answer("s1", "query")
    assert await cache.get_chat_turns("s1") == []


def test_prompt_restricts_to_context():
    prompt = build_prompt("Some context.", "Some question?")
    assert "Some context." in prompt
    assert "Some question?" in prompt
    assert "I don't know" in prompt
