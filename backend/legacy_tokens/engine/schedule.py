"""ScheduleEngine: stage entries and the stage-advancement state machine."""

import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

import structlog
from redis.asyncio import Redis
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError

from legacy_tokens.core.config import get_settings
from legacy_tokens.core.exceptions import (
    InvalidSchedule,
    InvalidStage,
    LedgerError,
    NotUnlocked,
)
from legacy_tokens.core.locking import TokenLock
from legacy_tokens.domain.schedule import (
    AdvanceBlock,
    ScheduleType,
    evaluate_advance,
    interval_unlock_height,
    validate_fixed_schedule,
    validate_interval_schedule,
    validate_metadata_ref,
)
from legacy_tokens.engine.registry import TokenRegistry
from legacy_tokens.engine.schemas import StageEntry, TokenDraft, TokenRecord
from legacy_tokens.host.chain import ChainHeight, RedisChainHeight
from legacy_tokens.host.ledger import RedisOwnershipLedger

logger = structlog.get_logger(__name__)


class TokenEventType:
    """Event type constants for the token:{id}:events Pub/Sub channel."""

    TOKEN_CREATED = "token.created"
    RECIPIENT_SET = "stage.recipient_set"
    STAGE_ADVANCED = "stage.advanced"


class ScheduleEngine:
    """Creates schedules, tracks recipients, and advances tokens through their stages.

    Per token, ``current_stage`` moves 0 -> 1 -> ... -> total_stages (terminal).
    Each step needs the stage unlocked and a recipient assigned, and performs
    exactly one ledger transfer. Local writes for a step are queued on one
    MULTI/EXEC pipeline that only runs after the transfer succeeded. If that
    pipeline fails, the transfer is reversed before the error propagates.
    """

    STAGE_KEY = "token:{token_id}:stage:{stage_index}"
    EVENTS_CHANNEL = "token:{token_id}:events"

    def __init__(
        self,
        redis: Redis,
        registry: TokenRegistry,
        chain: ChainHeight,
        lock: TokenLock | None = None,
        publish_events: bool | None = None,
    ):
        settings = get_settings()
        self.redis = redis
        self.registry = registry
        self.chain = chain
        self.lock = lock or TokenLock(redis)
        self.publish_events = settings.publish_events if publish_events is None else publish_events
        self.metadata_ref_max_length = settings.metadata_ref_max_length

    def _stage_key(self, token_id: int, stage_index: int) -> str:
        return self.STAGE_KEY.format(token_id=token_id, stage_index=stage_index)

    def _write_entry(self, pipe: Pipeline, token_id: int, entry: StageEntry) -> None:
        pipe.hset(self._stage_key(token_id, entry.stage_index), mapping=entry.to_redis())

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_interval(
        self,
        metadata_ref: str,
        interval_blocks: int,
        total_stages: int,
        is_public: bool,
        creator_id: str,
    ) -> int:
        """Create a token whose stages unlock ``interval_blocks`` after the previous one was exited.

        Only stage 0 is seeded; later entries are written as earlier stages advance.

        Returns:
            The new token id

        Raises:
            InvalidSchedule: non-positive interval, stage count outside 1..10, or bad metadata_ref
            MintFailure: the ledger rejected the mint
        """
        reason = validate_metadata_ref(metadata_ref, self.metadata_ref_max_length) or validate_interval_schedule(
            interval_blocks, total_stages
        )
        if reason:
            logger.info("schedule_rejected", schedule_type=ScheduleType.INTERVAL.value, reason=reason)
            raise InvalidSchedule(reason)

        height = await self.chain.current()
        draft = TokenDraft(
            metadata_ref=metadata_ref,
            creation_height=height,
            is_public=is_public,
            schedule_type=ScheduleType.INTERVAL,
            interval_blocks=interval_blocks,
            total_stages=total_stages,
        )
        first = StageEntry(stage_index=0, unlock_height=interval_unlock_height(height, interval_blocks))

        async with self.redis.pipeline(transaction=True) as pipe:
            record = await self.registry.create(creator_id, draft, pipe)
            self._write_entry(pipe, record.id, first)
            await self._commit(pipe, lambda: self.registry.unmint(record), token_id=record.id, step="create")

        logger.info(
            "token_created",
            token_id=record.id,
            schedule_type=record.schedule_type.value,
            total_stages=total_stages,
            interval_blocks=interval_blocks,
            height=height,
        )
        await self._publish(record.id, TokenEventType.TOKEN_CREATED, height, owner=record.owner)
        return record.id

    async def create_fixed(
        self,
        metadata_ref: str,
        unlock_heights: list[int],
        is_public: bool,
        creator_id: str,
    ) -> int:
        """Create a token with one caller-supplied unlock height per stage.

        Every stage entry is written up front. Heights are not checked for
        ordering or against the current height.

        Returns:
            The new token id

        Raises:
            InvalidSchedule: empty or oversized height list, negative height, or bad metadata_ref
            MintFailure: the ledger rejected the mint
        """
        heights = list(unlock_heights)
        reason = validate_metadata_ref(metadata_ref, self.metadata_ref_max_length) or validate_fixed_schedule(heights)
        if reason:
            logger.info("schedule_rejected", schedule_type=ScheduleType.FIXED.value, reason=reason)
            raise InvalidSchedule(reason)

        height = await self.chain.current()
        draft = TokenDraft(
            metadata_ref=metadata_ref,
            creation_height=height,
            is_public=is_public,
            schedule_type=ScheduleType.FIXED,
            total_stages=len(heights),
        )

        async with self.redis.pipeline(transaction=True) as pipe:
            record = await self.registry.create(creator_id, draft, pipe)
            for index, unlock_height in enumerate(heights):
                self._write_entry(pipe, record.id, StageEntry(stage_index=index, unlock_height=unlock_height))
            await self._commit(pipe, lambda: self.registry.unmint(record), token_id=record.id, step="create")

        logger.info(
            "token_created",
            token_id=record.id,
            schedule_type=record.schedule_type.value,
            total_stages=record.total_stages,
            height=height,
        )
        await self._publish(record.id, TokenEventType.TOKEN_CREATED, height, owner=record.owner)
        return record.id

    # ------------------------------------------------------------------
    # Recipients
    # ------------------------------------------------------------------

    async def set_stage_recipient(self, token_id: int, stage_index: int, recipient_id: str, caller_id: str) -> None:
        """Assign (or reassign) the recipient of a stage. Last write wins.

        Raises:
            NftNotFound: token does not exist
            NotAuthorized: caller is not the current owner
            InvalidStage: index out of range, stage already advanced out of, or entry not seeded yet
        """
        async with self.lock.hold(token_id):
            record = await self.registry.require_owner(token_id, caller_id)

            if stage_index < 0 or stage_index >= record.total_stages:
                raise InvalidStage(
                    f"Stage {stage_index} is out of range for token {token_id}",
                    token_id=token_id,
                    stage_index=stage_index,
                )
            if stage_index < record.current_stage:
                raise InvalidStage(
                    f"Stage {stage_index} of token {token_id} has already advanced",
                    token_id=token_id,
                    stage_index=stage_index,
                )

            key = self._stage_key(token_id, stage_index)
            if not await self.redis.exists(key):
                raise InvalidStage(
                    f"Stage {stage_index} of token {token_id} has no schedule entry yet",
                    token_id=token_id,
                    stage_index=stage_index,
                )

            await self.redis.hset(key, "recipient", recipient_id)
            height = await self.chain.current()

        logger.info("stage_recipient_set", token_id=token_id, stage_index=stage_index, recipient=recipient_id)
        await self._publish(
            token_id,
            TokenEventType.RECIPIENT_SET,
            height,
            stage_index=stage_index,
            recipient=recipient_id,
        )

    # ------------------------------------------------------------------
    # Eligibility and advancement
    # ------------------------------------------------------------------

    async def can_advance(self, token_id: int) -> bool:
        """True iff the token may leave its current stage right now. Never mutates.

        Raises:
            NftNotFound: token does not exist
            InvalidStage: the current stage has no schedule entry
        """
        record = await self.registry.require(token_id)
        if record.is_matured:
            return False

        entry = await self._require_current_entry(record)
        check = evaluate_advance(
            record.current_stage,
            record.total_stages,
            entry.unlock_height,
            entry.recipient,
            await self.chain.current(),
        )
        return check.allowed

    async def advance_stage(self, token_id: int) -> int:
        """Move the token out of its current stage and hand it to that stage's recipient.

        Returns:
            The new stage index

        Raises:
            NftNotFound: token does not exist
            InvalidStage: token matured, entry missing, or no recipient assigned
            NotUnlocked: current height below the stage's unlock height
            TransferFailure: the ledger rejected the transfer (nothing is written)
        """
        advanced = await self.advance(token_id)
        return advanced.current_stage

    async def advance(self, token_id: int) -> TokenRecord:
        """Same as ``advance_stage`` but returns the record as committed under the lock."""
        async with self.lock.hold(token_id):
            record = await self.registry.require(token_id)
            entry = await self.get_stage_schedule(token_id, record.current_stage)
            height = await self.chain.current()

            check = evaluate_advance(
                record.current_stage,
                record.total_stages,
                entry.unlock_height if entry else None,
                entry.recipient if entry else None,
                height,
            )
            if not check.allowed:
                logger.info(
                    "stage_advance_rejected",
                    token_id=token_id,
                    stage_index=record.current_stage,
                    blocked_by=check.blocked_by.value,
                    height=height,
                )
                if check.blocked_by == AdvanceBlock.LOCKED:
                    raise NotUnlocked(check.reason, token_id=token_id, unlock_height=entry.unlock_height, height=height)
                raise InvalidStage(check.reason, token_id=token_id, stage_index=record.current_stage)

            try:
                await self.registry.transfer(record, entry.recipient)
            except LedgerError as exc:
                logger.warning(
                    "ledger_transfer_failed",
                    token_id=token_id,
                    stage_index=record.current_stage,
                    ledger_code=exc.ledger_code,
                )
                raise

            advanced = record.advanced_to(entry.recipient)
            async with self.redis.pipeline(transaction=True) as pipe:
                self.registry.write(pipe, advanced)
                if advanced.schedule_type == ScheduleType.INTERVAL and not advanced.is_matured:
                    next_entry = StageEntry(
                        stage_index=advanced.current_stage,
                        unlock_height=interval_unlock_height(height, advanced.interval_blocks),
                    )
                    self._write_entry(pipe, token_id, next_entry)
                await self._commit(
                    pipe,
                    lambda: self.registry.transfer(advanced, record.owner),
                    token_id=token_id,
                    step="advance",
                )

        logger.info(
            "stage_advanced",
            token_id=token_id,
            from_stage=record.current_stage,
            to_stage=advanced.current_stage,
            previous_owner=record.owner,
            owner=advanced.owner,
            height=height,
        )
        await self._publish(
            token_id,
            TokenEventType.STAGE_ADVANCED,
            height,
            from_stage=record.current_stage,
            to_stage=advanced.current_stage,
            previous_owner=record.owner,
            owner=advanced.owner,
            matured=advanced.is_matured,
        )
        return advanced

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_nft_info(self, token_id: int) -> TokenRecord | None:
        return await self.registry.get(token_id)

    async def get_stage_schedule(self, token_id: int, stage_index: int) -> StageEntry | None:
        if stage_index < 0:
            return None
        data = await self.redis.hgetall(self._stage_key(token_id, stage_index))
        return StageEntry.from_redis(stage_index, data) if data else None

    async def get_schedule(self, token_id: int) -> list[StageEntry]:
        """All existing stage entries of a token, in stage order.

        Raises:
            NftNotFound: token does not exist
        """
        record = await self.registry.require(token_id)
        entries = []
        for stage_index in range(record.total_stages):
            entry = await self.get_stage_schedule(token_id, stage_index)
            if entry is None:
                break
            entries.append(entry)
        return entries

    async def get_blocks_until_unlock(self, token_id: int) -> int:
        """Blocks left before the current stage unlocks; negative once it is unlockable.

        Raises:
            NftNotFound: token does not exist
            InvalidStage: token matured or current entry missing
        """
        record = await self.registry.require(token_id)
        if record.is_matured:
            raise InvalidStage(f"Token {token_id} has already matured", token_id=token_id)
        entry = await self._require_current_entry(record)
        return entry.unlock_height - await self.chain.current()

    async def _require_current_entry(self, record: TokenRecord) -> StageEntry:
        entry = await self.get_stage_schedule(record.id, record.current_stage)
        if entry is None:
            raise InvalidStage(
                f"No schedule entry for stage {record.current_stage} of token {record.id}",
                token_id=record.id,
                stage_index=record.current_stage,
            )
        return entry

    async def _commit(
        self,
        pipe: Pipeline,
        compensate: Callable[[], Awaitable[None]],
        **context,
    ) -> None:
        """Execute the local write pipeline, undoing the ledger step if it fails.

        The ledger step has already committed by the time local writes run, so a
        failed EXEC would leave ledger and registry disagreeing about the holder.
        """
        try:
            await pipe.execute()
        except Exception as exc:
            logger.error("token_commit_failed", error=str(exc), **context)
            await compensate()
            raise

    async def _publish(self, token_id: int, event_type: str, height: int, **data) -> None:
        """Publish a typed event to the token's Pub/Sub channel.

        Runs after the state change committed; a failed publish is logged, not raised.
        """
        if not self.publish_events:
            return
        event = {
            "type": event_type,
            "token_id": token_id,
            "height": height,
            "timestamp": datetime.now(UTC).isoformat(),
            **data,
        }
        try:
            await self.redis.publish(self.EVENTS_CHANNEL.format(token_id=token_id), json.dumps(event))
        except (RedisError, OSError) as exc:
            logger.warning("token_event_publish_failed", token_id=token_id, event_type=event_type, error=str(exc))


def build_schedule_engine(redis: Redis) -> ScheduleEngine:
    """Wire a ScheduleEngine against Redis-backed host collaborators."""
    registry = TokenRegistry(redis, RedisOwnershipLedger(redis))
    return ScheduleEngine(redis, registry, RedisChainHeight(redis))
