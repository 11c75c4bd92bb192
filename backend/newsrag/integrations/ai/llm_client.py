"""Generation gateway: Claude/GPT provider abstraction with a safe failure reply."""
import logging
from collections.abc import Sequence
from typing import Protocol

from newsrag.config import Settings
from newsrag.exceptions import GenerationFailure
from newsrag.integrations.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = (
    "I apologize, but I'm having trouble generating a response right now. "
    "Please try again later."
)


class GenerationStrategy(Protocol):
    name: str

    async def generate(self, prompt: str) -> str: ...


class ClaudeStrategy:
    """Anthropic Messages API."""

    name = "claude"

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514", max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise GenerationFailure("ANTHROPIC_API_KEY is not set")

        import anthropic

        client = anthropic.AsyncAnthropic(api_key=self.api_key)
        try:
            message = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.2,
                messages=[{"role": "user", "content": prompt}],
            )
            return message.content[0].text
        finally:
            await client.close()


class OpenAIStrategy:
    """OpenAI Chat Completions API."""

    name = "openai"

    def __init__(self, api_key: str, model: str = "gpt-4o", max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens

    async def generate(self, prompt: str) -> str:
        if not self.api_key:
            raise GenerationFailure("OPENAI_API_KEY is not set")

        import openai

        client = openai.AsyncOpenAI(api_key=self.api_key)
        try:
            response = await client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=0.2,
                messages=[{"role": "user", "content": prompt}],
            )
            return response.choices[0].message.content or ""
        finally:
            await client.close()


class GenerationGateway:
    """Unified completion interface over an ordered list of providers.

    Usage:
        gateway = GenerationGateway([ClaudeStrategy(api_key)])
        text = await gateway.complete(prompt)

    complete() never raises: when every provider fails it returns
    APOLOGY_MESSAGE so a single bad turn cannot break the pipeline.
    """

    def __init__(self, strategies: Sequence[GenerationStrategy], timeout: float = 15.0):
        self.strategies = list(strategies)
        self.timeout = timeout
        self._breakers = {s.name: CircuitBreaker(f"generation:{s.name}") for s in self.strategies}

    async def complete(self, prompt: str) -> str:
        for strategy in self.strategies:
            breaker = self._breakers[strategy.name]

            async def attempt(strategy: GenerationStrategy = strategy) -> str:
                text = await strategy.generate(prompt)
                if not text or not text.strip():
                    raise GenerationFailure(f"{strategy.name} returned an empty completion")
                return text

            try:
                return await breaker.call(attempt, timeout=self.timeout)
            except Exception as exc:
                logger.warning("Generation provider %s failed: %r", strategy.name, exc)

        logger.warning("All generation providers failed, returning apology text")
        return APOLOGY_MESSAGE


def build_generation_gateway(settings: Settings) -> GenerationGateway:
    """Preferred provider first, the other one as a second chance when it has a key."""
    if settings.AI_PROVIDER not in ("claude", "openai"):
        raise ValueError(f"Unsupported AI provider: {settings.AI_PROVIDER}")

    claude = ClaudeStrategy(settings.ANTHROPIC_API_KEY)
    gpt = OpenAIStrategy(settings.OPENAI_API_KEY)
    if settings.GENERATION_MODEL:
        (claude if settings.AI_PROVIDER == "claude" else gpt).model = settings.GENERATION_MODEL

    ordered: list[GenerationStrategy] = [claude, gpt] if settings.AI_PROVIDER == "claude" else [gpt, claude]
    strategies = [ordered[0]] + [s for s in ordered[1:] if s.api_key]
    return GenerationGateway(strategies, timeout=settings.GENERATION_TIMEOUT)
