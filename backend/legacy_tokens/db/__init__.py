"""Storage package: shared Redis pool."""

from legacy_tokens.db.redis import close_redis, get_redis, init_redis

__all__ = [
    "close_redis",
    "get_redis",
    "init_redis",
]
