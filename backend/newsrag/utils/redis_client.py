"""Redis client helper -- opens and verifies an async Redis connection."""
import logging

from redis.asyncio import Redis, from_url

from newsrag.exceptions import CacheUnavailable

logger = logging.getLogger(__name__)


async def connect_redis(url: str) -> Redis:
    """Create an async Redis client and ping it once.

    Raises CacheUnavailable when the server cannot be reached.
    """
    client = from_url(url, decode_responses=True)
    try:
        await client.ping()
    except Exception as exc:
        await client.aclose()
        raise CacheUnavailable(f"Redis unavailable at {url}") from exc
    logger.info("Redis connected: %s", url)
    return client


async def close_redis(client: Redis | None) -> None:
    """Close Redis connection."""
    if client is not None:
        await client.aclose()
