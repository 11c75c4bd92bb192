"""Chat session and chat message ORM models."""
from sqlalchemy import JSON, Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from newsrag.models.base import Base, CreatedAtMixin, IntegerIDMixin


class ChatSession(Base, IntegerIDMixin, CreatedAtMixin):
    __tablename__ = "chat_sessions"

    session_id: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)


class ChatMessage(Base, IntegerIDMixin, CreatedAtMixin):
    __tablename__ = "chat_messages"

    # Plain column, not a foreign key: messages may be written before the
    # session row exists when two connections hand off the same session.
    session_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_user: Mapped[bool] = mapped_column(Boolean, nullable=False)
    sources: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
