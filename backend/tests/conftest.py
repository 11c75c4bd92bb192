"""Shared test fixtures: file-backed SQLite, in-memory cache, fake providers."""
import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from newsrag.config import Settings
from newsrag.database import create_engine
from newsrag.exceptions import GenerationFailure
from newsrag.integrations.ai.embeddings import EmbeddingGateway
from newsrag.integrations.ai.llm_client import GenerationGateway
from newsrag.main import create_app
from newsrag.services.container import Services, build_services
from newsrag.utils.session_cache import SessionCache

INFLATION_TITLE = "Inflation eases in March as energy prices fall"
DEFAULT_REPLY = "Inflation slowed to 2.4% in March, according to Reuters."


# --- Provider doubles ---

class KeywordEmbedding:
    """One axis per keyword; a text embeds to its keyword counts."""

    name = "keywords"

    def __init__(self, keywords: tuple[str, ...] = ("inflation", "chip", "vaccine")):
        self.keywords = keywords
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        lowered = text.lower()
        return [float(lowered.count(k)) for k in self.keywords]


class StaticEmbedding:
    name = "static"

    def __init__(self, vector: list[float]):
        self.vector = vector

    async def embed(self, text: str) -> list[float]:
        return list(self.vector)


class FailingEmbedding:
    name = "failing"

    async def embed(self, text: str) -> list[float]:
        raise httpx.ConnectError("embedding provider down")


class StaticGeneration:
    name = "static"

    def __init__(self, reply: str = DEFAULT_REPLY):
        self.reply = reply
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


class FailingGeneration:
    name = "failing"

    def __init__(self):
        self.calls = 0

    async def generate(self, prompt: str) -> str:
        self.calls += 1
        raise GenerationFailure("generation provider down")


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# --- Settings / service graph ---

def make_settings(**overrides) -> Settings:
    values = {
        "APP_ENV": "development",
        "DATABASE_URL": "sqlite+aiosqlite://",
        "REDIS_URL": "redis://localhost:6390/0",
        "JINA_API_KEY": "",
        "OPENAI_API_KEY": "",
        "ANTHROPIC_API_KEY": "",
        "SENTRY_DSN": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def keyword_gateway() -> EmbeddingGateway:
    return EmbeddingGateway([KeywordEmbedding()], dimension=3)


@pytest.fixture
def services_factory(tmp_path):
    """Return an async builder for a full service graph on a per-test database."""
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"

    async def factory(**overrides) -> Services:
        settings = overrides.pop("settings", None) or make_settings()
        if "engine" not in overrides:
            overrides["engine"] = create_engine(db_url)
        overrides.setdefault("cache", SessionCache())
        overrides.setdefault("embedder", keyword_gateway())
        overrides.setdefault("llm", GenerationGateway([StaticGeneration()]))
        return await build_services(settings, **overrides)

    return factory


@pytest.fixture
async def services(services_factory):
    built = await services_factory()
    yield built
    await built.aclose()


@pytest.fixture
def app(services):
    return create_app(services=services)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db_session(services):
    async with services.session_factory() as session:
        yield session
