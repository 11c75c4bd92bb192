"""Configuration tests."""
from newsrag.config import Settings


def test_default_settings():
    s = Settings(_env_file=None)
    assert s.APP_ENV == "development"
    assert s.is_development
    assert s.RAG_TOP_K == 5
    assert s.SIMILARITY_THRESHOLD == 0.5
    assert s.CHAT_HISTORY_TTL == 3600
    assert s.WS_HEARTBEAT_INTERVAL == 30.0
    assert s.WS_CONNECT_WINDOW == 60.0
    assert s.EMBEDDING_PROVIDER == "jina"


def test_production_is_not_development():
    s = Settings(_env_file=None, APP_ENV="production")
    assert not s.is_development


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("RAG_TOP_K", "8")
    monkeypatch.setenv("WS_CONNECT_LIMIT", "3")
    s = Settings(_env_file=None)
    assert s.RAG_TOP_K == 8
    assert s.WS_CONNECT_LIMIT == 3


def test_cors_origins_parsing():
    s = Settings(_env_file=None, CORS_ALLOWED_ORIGINS="http://localhost:3000,http://localhost:5173")
    origins = s.CORS_ALLOWED_ORIGINS.split(",")
    assert len(origins) == 2
    assert "http://localhost:3000" in origins
