"""Per-token mutation locks using Redis.

Every state-mutating operation on an existing token runs while holding the
token's lock, so two workers never interleave writes to the same record.
"""

import asyncio
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from redis.asyncio import Redis

from legacy_tokens.core.config import get_settings
from legacy_tokens.core.exceptions import TokenBusy


class TokenLock:
    """Manages token locks using Redis ``SET NX EX``."""

    LOCK_KEY = "token:{token_id}:lock"

    def __init__(
        self,
        redis: Redis,
        ttl: int | None = None,
        wait_timeout: float | None = None,
        poll_interval: float | None = None,
    ):
        settings = get_settings()
        self.redis = redis
        self.ttl = ttl or settings.lock_ttl
        self.wait_timeout = settings.lock_wait_timeout if wait_timeout is None else wait_timeout
        self.poll_interval = poll_interval or settings.lock_poll_interval

    def _lock_key(self, token_id: int) -> str:
        return self.LOCK_KEY.format(token_id=token_id)

    async def acquire(self, token_id: int, holder: str) -> bool:
        """Attempt to acquire the lock once.

        Returns:
            True if acquired, False if another holder has it
        """
        result = await self.redis.set(self._lock_key(token_id), holder, nx=True, ex=self.ttl)
        return bool(result)

    async def release(self, token_id: int, holder: str) -> bool:
        """Release the lock if ``holder`` still owns it.

        Returns:
            True if released, False if it expired or was taken over
        """
        key = self._lock_key(token_id)
        current = await self.redis.get(key)
        if current == holder:
            await self.redis.delete(key)
            return True
        return False

    async def holder(self, token_id: int) -> str | None:
        return await self.redis.get(self._lock_key(token_id))

    @asynccontextmanager
    async def hold(self, token_id: int) -> AsyncGenerator[str, None]:
        """Context manager that waits for the lock, yields the holder id, then releases.

        Raises:
            TokenBusy: lock not acquired within ``wait_timeout``
        """
        holder = str(uuid.uuid4())
        deadline = time.monotonic() + self.wait_timeout
        while not await self.acquire(token_id, holder):
            if time.monotonic() >= deadline:
                raise TokenBusy(f"Token {token_id} is locked by another operation", token_id=token_id)
            await asyncio.sleep(self.poll_interval)

        try:
            yield holder
        finally:
            await self.release(token_id, holder)
