"""Schedule policy and advancement eligibility.

Pure domain logic with no external dependencies: every function here is a
function of its arguments only, so the engine can evaluate eligibility the
same way for reads (``can_advance``) and writes (``advance_stage``).
"""
from dataclasses import dataclass
from enum import Enum

MAX_STAGES = 10


class ScheduleType(str, Enum):
    """How unlock heights are produced."""

    FIXED = "fixed"  # explicit list at creation
    INTERVAL = "interval"  # recomputed when the previous stage is exited


class AdvanceBlock(str, Enum):
    """Why a token cannot leave its current stage."""

    MATURED = "matured"
    MISSING_ENTRY = "missing_entry"
    LOCKED = "locked"
    NO_RECIPIENT = "no_recipient"


@dataclass
class AdvanceCheck:
    """Result of an eligibility evaluation."""

    allowed: bool
    blocked_by: AdvanceBlock | None = None
    reason: str = ""


def validate_metadata_ref(metadata_ref: str, max_length: int) -> str | None:
    """Return a rejection reason, or None if the metadata reference is acceptable."""
    if not isinstance(metadata_ref, str):
        return "metadata_ref must be a string"
    if len(metadata_ref) > max_length:
        return f"metadata_ref exceeds {max_length} characters"
    return None


def validate_interval_schedule(interval_blocks: int, total_stages: int) -> str | None:
    """Return a rejection reason, or None if the interval parameters are acceptable."""
    if interval_blocks <= 0:
        return "interval_blocks must be positive"
    if total_stages <= 0:
        return "total_stages must be positive"
    if total_stages > MAX_STAGES:
        return f"total_stages must be at most {MAX_STAGES}"
    return None


def validate_fixed_schedule(unlock_heights: list[int]) -> str | None:
    """Return a rejection reason, or None if the fixed heights are acceptable.

    Heights are caller policy: they may be in the past or non-monotonic.
    Only the count and sign are checked.
    """
    if not unlock_heights:
        return "unlock_heights must not be empty"
    if len(unlock_heights) > MAX_STAGES:
        return f"at most {MAX_STAGES} unlock heights are allowed"
    if any(height < 0 for height in unlock_heights):
        return "unlock heights must be non-negative"
    return None


def interval_unlock_height(height: int, interval_blocks: int) -> int:
    """Unlock height of a freshly seeded interval stage.

    Relative to the height at which the previous stage was exited (or the
    creation height for stage 0), never to the creation height plus a multiple.
    """
    return height + interval_blocks


def evaluate_advance(
    current_stage: int,
    total_stages: int,
    unlock_height: int | None,
    recipient: str | None,
    height: int,
) -> AdvanceCheck:
    """Decide whether a token may leave ``current_stage`` at ``height``.

    Args:
        current_stage: Token's current stage index
        total_stages: Token's stage count (``current_stage == total_stages`` is terminal)
        unlock_height: Unlock height of the current stage entry, None if the entry is missing
        recipient: Recipient of the current stage entry, None if unassigned
        height: Current chain height

    Returns:
        AdvanceCheck with allowed flag and the first blocking condition

    Rules (checked in this order):
        - Terminal stage never advances
        - The current stage must have a schedule entry
        - The chain must have reached the unlock height
        - A recipient must be assigned
    """
    if current_stage >= total_stages:
        return AdvanceCheck(False, AdvanceBlock.MATURED, "Token has already matured")

    if unlock_height is None:
        return AdvanceCheck(False, AdvanceBlock.MISSING_ENTRY, f"No schedule entry for stage {current_stage}")

    if height < unlock_height:
        return AdvanceCheck(
            False,
            AdvanceBlock.LOCKED,
            f"Stage {current_stage} unlocks at height {unlock_height}, current height is {height}",
        )

    if recipient is None:
        return AdvanceCheck(False, AdvanceBlock.NO_RECIPIENT, f"No recipient assigned for stage {current_stage}")

    return AdvanceCheck(True)
