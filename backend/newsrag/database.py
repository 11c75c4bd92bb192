"""Async SQLAlchemy engine and session factory."""
import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from newsrag.models import Base

logger = logging.getLogger(__name__)

SLOW_QUERY_THRESHOLD_MS = 500  # Log queries slower than 500ms


def create_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine and attach slow-query logging."""
    if url.startswith("sqlite"):
        # aiosqlite connections must not outlive the event loop that opened them.
        engine = create_async_engine(url, echo=echo, poolclass=NullPool)
    else:
        engine = create_async_engine(
            url,
            echo=echo,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
        )
    _install_slow_query_logging(engine)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ── Slow Query Logging ──────────────────────────────────────────────────

def _install_slow_query_logging(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info["query_start_time"] = time.perf_counter()

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start = conn.info.pop("query_start_time", None)
        if start is None:
            return
        elapsed_ms = (time.perf_counter() - start) * 1000
        if elapsed_ms >= SLOW_QUERY_THRESHOLD_MS:
            logger.warning(
                "Slow query detected: %.1fms: %s",
                elapsed_ms,
                statement[:200],
            )
