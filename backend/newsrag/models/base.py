"""SQLAlchemy base model with integer PK and timestamp mixins."""
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class IntegerIDMixin:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)


class CreatedAtMixin:
    # Set client-side so the value is available right after flush without a refresh.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
