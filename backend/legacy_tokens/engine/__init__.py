"""Stage-advancement engine: registry and schedule engine."""

from legacy_tokens.engine.registry import TokenRegistry
from legacy_tokens.engine.schedule import ScheduleEngine, TokenEventType, build_schedule_engine
from legacy_tokens.engine.schemas import StageEntry, TokenDraft, TokenRecord

__all__ = [
    "ScheduleEngine",
    "StageEntry",
    "TokenDraft",
    "TokenEventType",
    "TokenRecord",
    "TokenRegistry",
    "build_schedule_engine",
]
