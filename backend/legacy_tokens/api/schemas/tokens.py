"""Token Pydantic schemas for API requests and responses.

Request models only check types; schedule policy (positive interval, 1..10
stages, metadata length) is enforced by the engine so that violations come
back with the stable InvalidSchedule code.
"""

from pydantic import BaseModel, Field

from legacy_tokens.domain.schedule import ScheduleType


class CreateIntervalRequest(BaseModel):
    metadata_ref: str
    interval_blocks: int
    total_stages: int
    is_public: bool = True


class CreateFixedRequest(BaseModel):
    metadata_ref: str
    unlock_heights: list[int]
    is_public: bool = True


class CreateTokenResponse(BaseModel):
    token_id: int


class SetRecipientRequest(BaseModel):
    recipient: str = Field(..., min_length=1)


class SetRecipientResponse(BaseModel):
    ok: bool = True


class AdvanceResponse(BaseModel):
    token_id: int
    new_stage: int
    owner: str
    matured: bool


class TokenInfoResponse(BaseModel):
    """Public view of a token record."""

    token_id: int
    owner: str
    creator: str
    metadata_ref: str
    creation_height: int
    current_stage: int
    total_stages: int
    is_public: bool
    schedule_type: ScheduleType
    interval_blocks: int | None = None
    matured: bool


class StageEntryResponse(BaseModel):
    token_id: int
    stage_index: int
    unlock_height: int
    recipient: str | None = None


class ScheduleResponse(BaseModel):
    """Existing stage entries; interval tokens only list stages seeded so far."""

    token_id: int
    stages: list[StageEntryResponse] = Field(default_factory=list)


class OwnerResponse(BaseModel):
    token_id: int
    owner: str | None = None


class CanAdvanceResponse(BaseModel):
    token_id: int
    can_advance: bool


class BlocksUntilUnlockResponse(BaseModel):
    token_id: int
    blocks: int


class LastTokenIdResponse(BaseModel):
    last_token_id: int


class ChainHeightResponse(BaseModel):
    height: int
