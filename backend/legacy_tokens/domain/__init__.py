from legacy_tokens.domain.schedule import (
    MAX_STAGES,
    AdvanceBlock,
    AdvanceCheck,
    ScheduleType,
    evaluate_advance,
    interval_unlock_height,
    validate_fixed_schedule,
    validate_interval_schedule,
    validate_metadata_ref,
)

__all__ = [
    "MAX_STAGES",
    "AdvanceBlock",
    "AdvanceCheck",
    "ScheduleType",
    "evaluate_advance",
    "interval_unlock_height",
    "validate_fixed_schedule",
    "validate_interval_schedule",
    "validate_metadata_ref",
]
