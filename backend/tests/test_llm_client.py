"""Tests for the generation gateway."""
import asyncio

import pytest

from newsrag.exceptions import GenerationFailure
from newsrag.integrations.ai.llm_client import (
    APOLOGY_MESSAGE,
    ClaudeStrategy,
    GenerationGateway,
    OpenAIStrategy,
    build_generation_gateway,
)

from tests.conftest import FailingGeneration, StaticGeneration, make_settings


async def test_complete_returns_provider_text():
    gateway = GenerationGateway([StaticGeneration("An answer.")])
    assert await gateway.complete("prompt") == "An answer."


async def test_all_providers_failing_returns_apology():
    gateway = GenerationGateway([FailingGeneration()])
    assert await gateway.complete("prompt") == APOLOGY_MESSAGE


async def test_no_providers_returns_apology():
    assert await GenerationGateway([]).complete("prompt") == APOLOGY_MESSAGE


async def test_second_provider_used_after_failure():
    second = StaticGeneration("From the backup.")
    second.name = "backup"
    gateway = GenerationGateway([FailingGeneration(), second])
    assert await gateway.complete("prompt") == "From the backup."
    assert second.prompts == ["prompt"]


async def test_empty_completion_counts_as_failure():
    gateway = GenerationGateway([StaticGeneration("   ")])
    assert await gateway.complete("prompt") == APOLOGY_MESSAGE


async def test_timeout_returns_apology():
    class SlowGeneration:
        name = "slow"

        async def generate(self, prompt):
            await asyncio.sleep(1)
            return "late"

    gateway = GenerationGateway([SlowGeneration()], timeout=0.01)
    assert await gateway.complete("prompt") == APOLOGY_MESSAGE


async def test_missing_keys_raise_generation_failure():
    with pytest.raises(GenerationFailure):
        await ClaudeStrategy("").generate("prompt")
    with pytest.raises(GenerationFailure):
        await OpenAIStrategy("").generate("prompt")


async def test_unconfigured_gateway_apologizes():
    gateway = build_generation_gateway(make_settings())
    assert await gateway.complete("prompt") == APOLOGY_MESSAGE


def test_preferred_provider_first_and_keyed_backup():
    gateway = build_generation_gateway(make_settings(AI_PROVIDER="claude", OPENAI_API_KEY="sk-test"))
    assert [s.name for s in gateway.strategies] == ["claude", "openai"]

    gateway = build_generation_gateway(make_settings(AI_PROVIDER="openai"))
    assert [s.name for s in gateway.strategies] == ["openai"]


def test_generation_model_override():
    gateway = build_generation_gateway(make_settings(AI_PROVIDER="openai", GENERATION_MODEL="gpt-4o-mini"))
    assert gateway.strategies[0].model == "gpt-4o-mini"


def test_unknown_ai_provider_rejected():
    with pytest.raises(ValueError):
        build_generation_gateway(make_settings(AI_PROVIDER="llama"))
