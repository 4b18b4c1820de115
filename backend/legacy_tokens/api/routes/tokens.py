"""Token API routes."""

from fastapi import APIRouter, Depends, HTTPException

from legacy_tokens.api.schemas.tokens import (
    AdvanceResponse,
    BlocksUntilUnlockResponse,
    CanAdvanceResponse,
    CreateFixedRequest,
    CreateIntervalRequest,
    CreateTokenResponse,
    LastTokenIdResponse,
    OwnerResponse,
    ScheduleResponse,
    SetRecipientRequest,
    SetRecipientResponse,
    StageEntryResponse,
    TokenInfoResponse,
)
from legacy_tokens.core.auth import Principal, require_principal
from legacy_tokens.core.exceptions import NftNotFound
from legacy_tokens.db.redis import get_redis
from legacy_tokens.engine.schedule import ScheduleEngine, build_schedule_engine
from legacy_tokens.engine.schemas import StageEntry, TokenRecord

router = APIRouter()


def get_engine(redis=Depends(get_redis)) -> ScheduleEngine:
    """Dependency that provides a ScheduleEngine bound to the shared Redis pool."""
    return build_schedule_engine(redis)


def _token_info(record: TokenRecord) -> TokenInfoResponse:
    return TokenInfoResponse(
        token_id=record.id,
        owner=record.owner,
        creator=record.creator,
        metadata_ref=record.metadata_ref,
        creation_height=record.creation_height,
        current_stage=record.current_stage,
        total_stages=record.total_stages,
        is_public=record.is_public,
        schedule_type=record.schedule_type,
        interval_blocks=record.interval_blocks,
        matured=record.is_matured,
    )


def _stage_entry(token_id: int, entry: StageEntry) -> StageEntryResponse:
    return StageEntryResponse(
        token_id=token_id,
        stage_index=entry.stage_index,
        unlock_height=entry.unlock_height,
        recipient=entry.recipient,
    )


@router.post("/interval", response_model=CreateTokenResponse, status_code=201)
async def create_interval_token(
    request: CreateIntervalRequest,
    principal: Principal = Depends(require_principal),
    engine: ScheduleEngine = Depends(get_engine),
):
    """Create a token whose stages unlock a fixed number of blocks after the previous one.

    Raises:
        InvalidSchedule(422): non-positive interval or stage count outside 1..10
    """
    token_id = await engine.create_interval(
        request.metadata_ref,
        request.interval_blocks,
        request.total_stages,
        request.is_public,
        principal.principal_id,
    )
    return CreateTokenResponse(token_id=token_id)


@router.post("/fixed", response_model=CreateTokenResponse, status_code=201)
async def create_fixed_token(
    request: CreateFixedRequest,
    principal: Principal = Depends(require_principal),
    engine: ScheduleEngine = Depends(get_engine),
):
    """Create a token with an explicit unlock height per stage.

    Raises:
        InvalidSchedule(422): empty or oversized height list
    """
    token_id = await engine.create_fixed(
        request.metadata_ref,
        request.unlock_heights,
        request.is_public,
        principal.principal_id,
    )
    return CreateTokenResponse(token_id=token_id)


@router.get("/last-id", response_model=LastTokenIdResponse)
async def get_last_token_id(engine: ScheduleEngine = Depends(get_engine)):
    return LastTokenIdResponse(last_token_id=await engine.registry.last_token_id())


@router.get("/{token_id}", response_model=TokenInfoResponse)
async def get_token(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    record = await engine.get_nft_info(token_id)
    if record is None:
        raise NftNotFound(f"Token {token_id} not found", token_id=token_id)
    return _token_info(record)


@router.get("/{token_id}/owner", response_model=OwnerResponse)
async def get_token_owner(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    """Holder according to the ownership ledger (null if never minted)."""
    return OwnerResponse(token_id=token_id, owner=await engine.registry.get_owner(token_id))


@router.put("/{token_id}/stages/{stage_index}/recipient", response_model=SetRecipientResponse)
async def set_stage_recipient(
    token_id: int,
    stage_index: int,
    request: SetRecipientRequest,
    principal: Principal = Depends(require_principal),
    engine: ScheduleEngine = Depends(get_engine),
):
    """Assign the recipient of a stage. Owner only.

    Raises:
        NotAuthorized(403): caller is not the current owner
        NftNotFound(404): token does not exist
        InvalidStage(409): stage out of range, already advanced, or not seeded yet
    """
    await engine.set_stage_recipient(token_id, stage_index, request.recipient, principal.principal_id)
    return SetRecipientResponse()


@router.post("/{token_id}/advance", response_model=AdvanceResponse)
async def advance_stage(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    """Advance the token out of its current stage.

    Anyone may trigger advancement; the unlock height and recipient gate it.

    Raises:
        NftNotFound(404): token does not exist
        InvalidStage(409): matured or no recipient
        NotUnlocked(409): unlock height not reached
        TransferFailure(409): ledger rejected the transfer
    """
    record = await engine.advance(token_id)
    return AdvanceResponse(
        token_id=token_id,
        new_stage=record.current_stage,
        owner=record.owner,
        matured=record.is_matured,
    )


@router.get("/{token_id}/can-advance", response_model=CanAdvanceResponse)
async def can_advance(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    return CanAdvanceResponse(token_id=token_id, can_advance=await engine.can_advance(token_id))


@router.get("/{token_id}/stages", response_model=ScheduleResponse)
async def get_schedule(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    entries = await engine.get_schedule(token_id)
    return ScheduleResponse(token_id=token_id, stages=[_stage_entry(token_id, e) for e in entries])


@router.get("/{token_id}/stages/{stage_index}", response_model=StageEntryResponse)
async def get_stage_schedule(token_id: int, stage_index: int, engine: ScheduleEngine = Depends(get_engine)):
    entry = await engine.get_stage_schedule(token_id, stage_index)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"No schedule entry for stage {stage_index} of token {token_id}")
    return _stage_entry(token_id, entry)


@router.get("/{token_id}/blocks-until-unlock", response_model=BlocksUntilUnlockResponse)
async def get_blocks_until_unlock(token_id: int, engine: ScheduleEngine = Depends(get_engine)):
    return BlocksUntilUnlockResponse(token_id=token_id, blocks=await engine.get_blocks_until_unlock(token_id))
