"""TokenRegistry: token records and the token id allocator."""

import structlog
from redis.asyncio import Redis
from redis.asyncio.client import Pipeline

from legacy_tokens.core.exceptions import NftNotFound, NotAuthorized
from legacy_tokens.engine.schemas import TokenDraft, TokenRecord
from legacy_tokens.host.ledger import OwnershipLedger

logger = structlog.get_logger(__name__)


class TokenRegistry:
    """Owns the canonical record per token and the id allocator.

    Records live in the Redis hash ``token:{id}``. Ids come from an atomic
    counter starting at 1 and are never reused, even when the operation that
    allocated one fails later.
    """

    RECORD_KEY = "token:{token_id}"
    COUNTER_KEY = "token:last_id"

    def __init__(self, redis: Redis, ledger: OwnershipLedger):
        self.redis = redis
        self.ledger = ledger

    def _record_key(self, token_id: int) -> str:
        return self.RECORD_KEY.format(token_id=token_id)

    async def allocate_id(self) -> int:
        """Return the next unused token id and advance the allocator."""
        return await self.redis.incr(self.COUNTER_KEY)

    async def last_token_id(self) -> int:
        """Highest id allocated so far, 0 if none."""
        value = await self.redis.get(self.COUNTER_KEY)
        return int(value) if value else 0

    async def create(self, owner_id: str, draft: TokenDraft, pipe: Pipeline) -> TokenRecord:
        """Allocate an id, mint it to ``owner_id`` and queue the record write on ``pipe``.

        The record only becomes visible when the caller executes ``pipe``,
        together with whatever stage entries it queued alongside.

        Raises:
            MintFailure: the ledger rejected the mint (no record is queued)
        """
        token_id = await self.allocate_id()
        await self.ledger.mint(token_id, owner_id)

        record = TokenRecord(id=token_id, owner=owner_id, creator=owner_id, **draft.model_dump())
        self.write(pipe, record)
        return record

    def write(self, pipe: Pipeline, record: TokenRecord) -> None:
        """Queue a full record write on a transaction pipeline."""
        pipe.hset(self._record_key(record.id), mapping=record.to_redis())

    async def transfer(self, record: TokenRecord, to_id: str) -> None:
        """Move ledger ownership of ``record`` from its current owner to ``to_id``.

        Only the ledger changes here; the caller writes the advanced record.

        Raises:
            TransferFailure: the ledger rejected the transfer
        """
        await self.ledger.transfer(record.id, record.owner, to_id)

    async def unmint(self, record: TokenRecord) -> None:
        """Burn the ledger entry minted by ``create`` for a record that was never written."""
        await self.ledger.burn(record.id, record.owner)
        logger.warning("token_unminted", token_id=record.id, owner=record.owner)

    async def get(self, token_id: int) -> TokenRecord | None:
        data = await self.redis.hgetall(self._record_key(token_id))
        return TokenRecord.from_redis(token_id, data) if data else None

    async def require(self, token_id: int) -> TokenRecord:
        """Fetch a record or raise NftNotFound."""
        record = await self.get(token_id)
        if record is None:
            raise NftNotFound(f"Token {token_id} not found", token_id=token_id)
        return record

    async def require_owner(self, token_id: int, caller_id: str) -> TokenRecord:
        """Fetch a record and check that ``caller_id`` owns it.

        Raises:
            NftNotFound: no record for ``token_id``
            NotAuthorized: caller is not the current owner
        """
        record = await self.require(token_id)
        if record.owner != caller_id:
            logger.info("owner_check_failed", token_id=token_id, caller=caller_id)
            raise NotAuthorized(f"Caller does not own token {token_id}", token_id=token_id)
        return record

    async def get_owner(self, token_id: int) -> str | None:
        """Holder according to the ownership ledger."""
        return await self.ledger.owner_of(token_id)

    async def get_token_uri(self, token_id: int) -> str | None:
        record = await self.get(token_id)
        return record.metadata_ref if record else None
