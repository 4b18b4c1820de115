"""Process-wide Redis client.

One client backs token records, stage entries, locks, events and the
Redis-hosted ledger and chain height. ``main.lifespan`` opens it at startup
and closes it at shutdown; request handlers reach it through ``get_redis``.
"""

import redis.asyncio as redis
import structlog

from legacy_tokens.core.config import get_settings

logger = structlog.get_logger(__name__)

_client: redis.Redis | None = None


async def init_redis(url: str | None = None) -> redis.Redis:
    """Open the shared client (idempotent) and ping it before returning."""
    global _client

    if _client is None:
        client = redis.from_url(url or get_settings().redis_url, encoding="utf-8", decode_responses=True)
        await client.ping()
        _client = client
        logger.info("redis_connected")
    return _client


async def close_redis() -> None:
    global _client

    if _client is None:
        return
    client, _client = _client, None
    await client.aclose()


def get_redis() -> redis.Redis:
    """FastAPI dependency returning the shared client.

    Raises:
        RuntimeError: called before ``init_redis``
    """
    if _client is None:
        raise RuntimeError("Redis client is not open; init_redis() runs in the app lifespan")
    return _client
