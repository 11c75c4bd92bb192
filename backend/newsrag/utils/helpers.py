"""General-purpose utility helpers."""
import secrets
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_session_id() -> str:
    """High-entropy opaque session id (128 bits, URL safe)."""
    return secrets.token_urlsafe(16)


class MonotonicClock:
    """UTC wall clock that never goes backwards across calls."""

    def __init__(self):
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = utc_now()
        if self._last is not None and current < self._last:
            current = self._last
        self._last = current
        return current
