"""SQLAlchemy ORM models - articles, chat sessions, chat messages."""
from newsrag.models.base import Base, CreatedAtMixin, IntegerIDMixin
from newsrag.models.article import NewsArticle
from newsrag.models.chat import ChatMessage, ChatSession

__all__ = [
    "Base",
    "CreatedAtMixin",
    "IntegerIDMixin",
    "NewsArticle",
    "ChatSession",
    "ChatMessage",
]
