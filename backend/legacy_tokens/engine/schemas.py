"""Token record and stage entry models with their Redis hash encoding."""

from pydantic import BaseModel

from legacy_tokens.domain.schedule import ScheduleType


class TokenDraft(BaseModel):
    """Creation-time token fields, before an id and owner exist."""

    metadata_ref: str
    creation_height: int
    is_public: bool
    schedule_type: ScheduleType
    interval_blocks: int | None = None
    total_stages: int


class TokenRecord(BaseModel):
    """Canonical record of one token."""

    id: int
    owner: str
    creator: str
    metadata_ref: str
    creation_height: int
    current_stage: int = 0
    is_public: bool
    schedule_type: ScheduleType
    interval_blocks: int | None = None
    total_stages: int

    @property
    def is_matured(self) -> bool:
        return self.current_stage >= self.total_stages

    def advanced_to(self, new_owner: str) -> "TokenRecord":
        """Copy of this record after leaving the current stage."""
        return self.model_copy(update={"owner": new_owner, "current_stage": self.current_stage + 1})

    def to_redis(self) -> dict[str, str]:
        # interval_blocks is omitted for fixed schedules, never stored as empty
        mapping = {
            "owner": self.owner,
            "creator": self.creator,
            "metadata_ref": self.metadata_ref,
            "creation_height": str(self.creation_height),
            "current_stage": str(self.current_stage),
            "is_public": "1" if self.is_public else "0",
            "schedule_type": self.schedule_type.value,
            "total_stages": str(self.total_stages),
        }
        if self.interval_blocks is not None:
            mapping["interval_blocks"] = str(self.interval_blocks)
        return mapping

    @classmethod
    def from_redis(cls, token_id: int, data: dict[str, str]) -> "TokenRecord":
        interval = data.get("interval_blocks")
        return cls(
            id=token_id,
            owner=data["owner"],
            creator=data["creator"],
            metadata_ref=data["metadata_ref"],
            creation_height=int(data["creation_height"]),
            current_stage=int(data["current_stage"]),
            is_public=data["is_public"] == "1",
            schedule_type=ScheduleType(data["schedule_type"]),
            interval_blocks=int(interval) if interval is not None else None,
            total_stages=int(data["total_stages"]),
        )


class StageEntry(BaseModel):
    """Unlock condition and destination of one stage."""

    stage_index: int
    unlock_height: int
    recipient: str | None = None

    def to_redis(self) -> dict[str, str]:
        mapping = {"unlock_height": str(self.unlock_height)}
        if self.recipient is not None:
            mapping["recipient"] = self.recipient
        return mapping

    @classmethod
    def from_redis(cls, stage_index: int, data: dict[str, str]) -> "StageEntry":
        return cls(
            stage_index=stage_index,
            unlock_height=int(data["unlock_height"]),
            recipient=data.get("recipient"),
        )
