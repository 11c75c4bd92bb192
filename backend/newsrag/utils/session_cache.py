"""Tiered session cache: Redis when reachable, an in-process dict otherwise.

Values are JSON documents. Chat data lives under two key namespaces:

- ``chat:<sessionId>``          interaction log, newest turn first
- ``chat_messages:<sessionId>`` structured message list for history reads

Once the Redis tier fails (at startup or on any later operation) every
subsequent call in the process uses the memory tier. The memory tier ignores
``expire``: entries live until deleted or until the process exits.
"""
import copy
import json
import logging
from typing import Any, Protocol

from redis.asyncio import Redis

from newsrag.exceptions import CacheUnavailable
from newsrag.utils.redis_client import close_redis, connect_redis

logger = logging.getLogger(__name__)

CHAT_HISTORY_TTL = 60 * 60


def chat_history_key(session_id: str) -> str:
    return f"chat:{session_id}"


def chat_messages_key(session_id: str) -> str:
    return f"chat_messages:{session_id}"


class CacheTier(Protocol):
    name: str

    async def get(self, key: str) -> Any: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def push(self, key: str, value: Any, max_length: int | None = None) -> int: ...

    async def expire(self, key: str, ttl_seconds: int) -> bool: ...

    async def delete(self, key: str) -> bool: ...


class RedisTier:
    name = "redis"

    def __init__(self, client: Redis):
        self.client = client

    async def get(self, key: str) -> Any:
        if await self.client.type(key) == "list":
            items = await self.client.lrange(key, 0, -1)
            return [json.loads(item) for item in items]
        raw = await self.client.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        await self.client.set(key, json.dumps(value))

    async def push(self, key: str, value: Any, max_length: int | None = None) -> int:
        length = await self.client.lpush(key, json.dumps(value))
        if max_length:
            await self.client.ltrim(key, 0, max_length - 1)
            length = min(length, max_length)
        return length

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(await self.client.expire(key, ttl_seconds))

    async def delete(self, key: str) -> bool:
        return bool(await self.client.delete(key))


class MemoryTier:
    """Dict-backed tier with the same JSON semantics as RedisTier."""

    name = "memory"

    def __init__(self):
        self._store: dict[str, Any] = {}

    async def get(self, key: str) -> Any:
        return copy.deepcopy(self._store.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._store[key] = json.loads(json.dumps(value))

    async def push(self, key: str, value: Any, max_length: int | None = None) -> int:
        items = self._store.setdefault(key, [])
        if not isinstance(items, list):
            raise TypeError(f"Key {key!r} does not hold a list")
        items.insert(0, json.loads(json.dumps(value)))
        if max_length:
            del items[max_length:]
        return len(items)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        # No expiry in process memory.
        return key in self._store

    async def delete(self, key: str) -> bool:
        return self._store.pop(key, None) is not None


class SessionCache:
    """One cache interface over a primary tier and a sticky in-memory fallback."""

    def __init__(
        self,
        primary: CacheTier | None = None,
        fallback: MemoryTier | None = None,
        history_ttl: int = CHAT_HISTORY_TTL,
        max_turns: int | None = 50,
    ):
        self._primary = primary
        self._fallback = fallback or MemoryTier()
        self._degraded = primary is None
        self.history_ttl = history_ttl
        self.max_turns = max_turns

    @classmethod
    async def connect(cls, url: str, **kwargs: Any) -> "SessionCache":
        """Build a cache on Redis, or on the memory tier if Redis is unreachable."""
        try:
            client = await connect_redis(url)
        except CacheUnavailable as exc:
            logger.warning("%s; session cache will use in-memory storage", exc)
            return cls(None, **kwargs)
        return cls(RedisTier(client), **kwargs)

    @property
    def tier(self) -> CacheTier:
        if self._degraded or self._primary is None:
            return self._fallback
        return self._primary

    @property
    def using_fallback(self) -> bool:
        return self.tier is self._fallback

    async def _run(self, operation: str, *args: Any) -> Any:
        if not self._degraded and self._primary is not None:
            try:
                return await getattr(self._primary, operation)(*args)
            except Exception as exc:
                self._degraded = True
                logger.warning(
                    "Cache tier %s failed during %s (%r); switching to in-memory storage",
                    self._primary.name, operation, exc,
                )
        return await getattr(self._fallback, operation)(*args)

    async def get(self, key: str) -> Any:
        return await self._run("get", key)

    async def set(self, key: str, value: Any) -> None:
        await self._run("set", key, value)

    async def push(self, key: str, value: Any, max_length: int | None = None) -> int:
        return await self._run("push", key, value, max_length)

    async def expire(self, key: str, ttl_seconds: int) -> bool:
        return await self._run("expire", key, ttl_seconds)

    async def delete(self, key: str) -> bool:
        return await self._run("delete", key)

    async def close(self) -> None:
        if isinstance(self._primary, RedisTier):
            await close_redis(self._primary.client)

    # ── Chat helpers ──

    async def add_chat_turn(self, session_id: str, turn: dict[str, Any]) -> None:
        key = chat_history_key(session_id)
        await self.push(key, turn, self.max_turns)
        await self.expire(key, self.history_ttl)

    async def get_chat_turns(self, session_id: str) -> list[dict[str, Any]]:
        return await self.get(chat_history_key(session_id)) or []

    async def get_session_messages(self, session_id: str) -> list[dict[str, Any]] | None:
        return await self.get(chat_messages_key(session_id))

    async def set_session_messages(self, session_id: str, messages: list[dict[str, Any]]) -> None:
        key = chat_messages_key(session_id)
        await self.set(key, messages)
        await self.expire(key, self.history_ttl)

    async def clear_session(self, session_id: str) -> None:
        await self.delete(chat_messages_key(session_id))
        await self.delete(chat_history_key(session_id))
