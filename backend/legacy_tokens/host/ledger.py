"""Ownership ledger: atomic mint/transfer primitives keyed by token id.

Rejection codes follow the usual NFT ledger convention:
1 = already minted / sender is not the holder, 3 = token does not exist.
"""

from typing import Protocol, runtime_checkable

import structlog
from redis.asyncio import Redis
from redis.exceptions import WatchError

from legacy_tokens.core.exceptions import MintFailure, TransferFailure

logger = structlog.get_logger(__name__)

ERR_OWNERSHIP = 1
ERR_NOT_FOUND = 3


@runtime_checkable
class OwnershipLedger(Protocol):
    """Atomic ownership primitives. Each call either fully succeeds or has no effect."""

    async def mint(self, token_id: int, owner_id: str) -> None:
        """Raises MintFailure if the id is already minted."""
        ...

    async def transfer(self, token_id: int, from_id: str, to_id: str) -> None:
        """Raises TransferFailure if ``from_id`` is not the current holder."""
        ...

    async def burn(self, token_id: int, owner_id: str) -> None:
        """Raises TransferFailure if ``owner_id`` is not the current holder."""
        ...

    async def owner_of(self, token_id: int) -> str | None: ...


class RedisOwnershipLedger:
    """Ownership ledger stored as one Redis string per token."""

    OWNER_KEY = "ledger:owner:{token_id}"

    def __init__(self, redis: Redis):
        self.redis = redis

    def _owner_key(self, token_id: int) -> str:
        return self.OWNER_KEY.format(token_id=token_id)

    async def mint(self, token_id: int, owner_id: str) -> None:
        created = await self.redis.set(self._owner_key(token_id), owner_id, nx=True)
        if not created:
            raise MintFailure(ERR_OWNERSHIP, f"Token {token_id} is already minted", token_id=token_id)
        logger.debug("ledger_minted", token_id=token_id, owner=owner_id)

    async def transfer(self, token_id: int, from_id: str, to_id: str) -> None:
        key = self._owner_key(token_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    holder = await pipe.get(key)
                    if holder is None:
                        raise TransferFailure(ERR_NOT_FOUND, f"Token {token_id} is not minted", token_id=token_id)
                    if holder != from_id:
                        raise TransferFailure(
                            ERR_OWNERSHIP,
                            f"Sender is not the holder of token {token_id}",
                            token_id=token_id,
                        )
                    pipe.multi()
                    pipe.set(key, to_id)
                    await pipe.execute()
                    break
                except WatchError:
                    continue
        logger.debug("ledger_transferred", token_id=token_id, sender=from_id, recipient=to_id)

    async def burn(self, token_id: int, owner_id: str) -> None:
        """Remove the ownership entry of ``token_id``, which must be held by ``owner_id``.

        Undoes a mint whose local record write never landed.
        """
        key = self._owner_key(token_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    holder = await pipe.get(key)
                    if holder is None:
                        raise TransferFailure(ERR_NOT_FOUND, f"Token {token_id} is not minted", token_id=token_id)
                    if holder != owner_id:
                        raise TransferFailure(
                            ERR_OWNERSHIP,
                            f"Owner is not the holder of token {token_id}",
                            token_id=token_id,
                        )
                    pipe.multi()
                    pipe.delete(key)
                    await pipe.execute()
                    break
                except WatchError:
                    continue
        logger.debug("ledger_burned", token_id=token_id, owner=owner_id)

    async def owner_of(self, token_id: int) -> str | None:
        return await self.redis.get(self._owner_key(token_id))
