"""Chat session / chat message data access layer."""
import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from newsrag.models.chat import ChatMessage, ChatSession

logger = logging.getLogger(__name__)


async def get_session(db: AsyncSession, session_id: str) -> ChatSession | None:
    return (
        await db.execute(select(ChatSession).where(ChatSession.session_id == session_id))
    ).scalar_one_or_none()


async def create_session(db: AsyncSession, session_id: str) -> ChatSession:
    """Insert a session row, tolerating a concurrent insert of the same id.

    Must be the first write of the unit of work: a unique violation rolls the
    transaction back before the existing row is re-read.
    """
    session = ChatSession(session_id=session_id)
    db.add(session)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        existing = await get_session(db, session_id)
        if existing is None:
            raise
        logger.info("Chat session %s was created concurrently; reusing it", session_id)
        return existing
    return session


async def get_or_create_session(db: AsyncSession, session_id: str) -> ChatSession:
    existing = await get_session(db, session_id)
    if existing is not None:
        return existing
    return await create_session(db, session_id)


async def delete_session(db: AsyncSession, session_id: str) -> int:
    result = await db.execute(delete(ChatSession).where(ChatSession.session_id == session_id))
    await db.flush()
    return result.rowcount


async def create_message(
    db: AsyncSession,
    session_id: str,
    content: str,
    is_user: bool,
    sources: list[str] | None = None,
) -> ChatMessage:
    message = ChatMessage(session_id=session_id, content=content, is_user=is_user, sources=sources)
    db.add(message)
    await db.flush()
    return message


async def list_messages(db: AsyncSession, session_id: str) -> list[ChatMessage]:
    rows = (
        await db.execute(
            select(ChatMessage).where(ChatMessage.session_id == session_id).order_by(ChatMessage.id)
        )
    ).scalars().all()
    return list(rows)


async def delete_messages(db: AsyncSession, session_id: str) -> int:
    result = await db.execute(delete(ChatMessage).where(ChatMessage.session_id == session_id))
    await db.flush()
    return result.rowcount
