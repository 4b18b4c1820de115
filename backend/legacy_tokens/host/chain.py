"""Chain height: the host's monotonically non-decreasing block counter."""

from typing import Protocol, runtime_checkable

import structlog
from redis.asyncio import Redis
from redis.exceptions import WatchError

from legacy_tokens.core.config import get_settings

logger = structlog.get_logger(__name__)


@runtime_checkable
class ChainHeight(Protocol):
    """Read-only view of the current block height.

    The engine reads the height once per operation and never writes it.
    """

    async def current(self) -> int: ...


class RedisChainHeight:
    """Chain height kept in Redis, with host-side mining helpers."""

    HEIGHT_KEY = "chain:height"

    def __init__(self, redis: Redis, genesis_height: int | None = None):
        self.redis = redis
        self.genesis_height = get_settings().genesis_height if genesis_height is None else genesis_height

    async def current(self) -> int:
        value = await self.redis.get(self.HEIGHT_KEY)
        return int(value) if value is not None else self.genesis_height

    async def mine(self, blocks: int = 1) -> int:
        """Advance the height by ``blocks`` and return the new height."""
        if blocks < 0:
            raise ValueError("blocks must be non-negative")
        await self.redis.set(self.HEIGHT_KEY, self.genesis_height, nx=True)
        height = await self.redis.incrby(self.HEIGHT_KEY, blocks)
        logger.debug("chain_mined", blocks=blocks, height=height)
        return height

    async def advance_to(self, height: int) -> int:
        """Move the height forward to ``height``.

        Raises:
            ValueError: ``height`` is below the current height
        """
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(self.HEIGHT_KEY)
                    value = await pipe.get(self.HEIGHT_KEY)
                    current = int(value) if value is not None else self.genesis_height
                    if height < current:
                        raise ValueError(f"Height cannot move backwards ({current} -> {height})")
                    pipe.multi()
                    pipe.set(self.HEIGHT_KEY, height)
                    await pipe.execute()
                    return height
                except WatchError:
                    continue
