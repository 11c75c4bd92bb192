"""Chat business logic shared by the REST routes and the WebSocket transport."""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from newsrag.integrations.ai.rag import RAGAnswer, RAGOrchestrator
from newsrag.repositories import chat_repository
from newsrag.schemas.chat import ChatMessageOut
from newsrag.utils.session_cache import SessionCache

logger = logging.getLogger(__name__)


class ChatService:
    """Stores chat turns durably, mirrors them into the fast cache, and runs RAG."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        orchestrator: RAGOrchestrator,
        cache: SessionCache,
    ):
        self._session_factory = session_factory
        self.orchestrator = orchestrator
        self.cache = cache

    async def ensure_session(self, session_id: str) -> None:
        """Create the session record if it is missing.

        Check-then-create is not atomic across connections; a concurrent insert
        is absorbed by the repository, so at most one row per id survives.
        """
        async with self._session_factory() as db:
            await chat_repository.get_or_create_session(db, session_id)
            await db.commit()

    async def record_message(
        self,
        session_id: str,
        content: str,
        is_user: bool,
        sources: list[str] | None = None,
    ) -> ChatMessageOut:
        async with self._session_factory() as db:
            message = await chat_repository.create_message(db, session_id, content, is_user, sources)
            stored = ChatMessageOut.model_validate(message)
            messages = await chat_repository.list_messages(db, session_id)
            await db.commit()

        await self.cache.set_session_messages(session_id, [_dump(m) for m in messages])
        return stored

    async def answer(self, session_id: str, message: str) -> RAGAnswer:
        return await self.orchestrator.answer(session_id, message)

    async def handle_turn(self, session_id: str, message: str) -> RAGAnswer:
        """Full request/response turn: session, user message, answer, bot message."""
        await self.ensure_session(session_id)
        await self.record_message(session_id, message, is_user=True)
        result = await self.answer(session_id, message)
        await self.record_message(session_id, result.message, is_user=False, sources=result.sources)
        return result

    async def history(self, session_id: str) -> list[ChatMessageOut]:
        """Prefer the cached message list, fall back to the durable store."""
        cached = await self.cache.get_session_messages(session_id)
        if cached:
            return [ChatMessageOut.model_validate(m) for m in cached]

        async with self._session_factory() as db:
            messages = await chat_repository.list_messages(db, session_id)
        return [ChatMessageOut.model_validate(m) for m in messages]

    async def clear(self, session_id: str) -> None:
        """Remove both cache namespaces, the message log and the session record."""
        await self.cache.clear_session(session_id)
        async with self._session_factory() as db:
            deleted = await chat_repository.delete_messages(db, session_id)
            await chat_repository.delete_session(db, session_id)
            await db.commit()
        logger.info("Cleared session %s (%d messages)", session_id, deleted)


def _dump(message: Any) -> dict[str, Any]:
    return ChatMessageOut.model_validate(message).model_dump(mode="json", by_alias=True)
