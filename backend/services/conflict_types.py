from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Iterable


class SessionStatus(str, enum.Enum):
    CONFIRMED = "CONFIRMED"
    CONFLICTED = "CONFLICTED"


class ConflictType(str, enum.Enum):
    # Hard overlaps: same resource double-booked.
    TEACHER_CONFLICT = "TEACHER_CONFLICT"
    STUDENT_CONFLICT = "STUDENT_CONFLICT"
    BOOTH_CONFLICT = "BOOTH_CONFLICT"

    # Availability-derived (soft).
    TEACHER_UNAVAILABLE = "TEACHER_UNAVAILABLE"
    STUDENT_UNAVAILABLE = "STUDENT_UNAVAILABLE"
    TEACHER_WRONG_TIME = "TEACHER_WRONG_TIME"
    STUDENT_WRONG_TIME = "STUDENT_WRONG_TIME"
    NO_SHARED_AVAILABILITY = "NO_SHARED_AVAILABILITY"

    # Always skipped before classification; never a resolvable conflict.
    VACATION = "VACATION"


HARD_CONFLICT_TYPES: frozenset[ConflictType] = frozenset(
    {
        ConflictType.TEACHER_CONFLICT,
        ConflictType.STUDENT_CONFLICT,
        ConflictType.BOOTH_CONFLICT,
    }
)

AVAILABILITY_CONFLICT_TYPES: frozenset[ConflictType] = frozenset(
    {
        ConflictType.TEACHER_UNAVAILABLE,
        ConflictType.STUDENT_UNAVAILABLE,
        ConflictType.TEACHER_WRONG_TIME,
        ConflictType.STUDENT_WRONG_TIME,
        ConflictType.NO_SHARED_AVAILABILITY,
    }
)

AUTOSKIP_TYPES: frozenset[ConflictType] = frozenset({ConflictType.VACATION})

# Types that can appear in SchedulingPolicy.mark_as_conflicted; VACATION is never markable.
MARKABLE_TYPES: tuple[ConflictType, ...] = (
    ConflictType.TEACHER_CONFLICT,
    ConflictType.STUDENT_CONFLICT,
    ConflictType.BOOTH_CONFLICT,
    ConflictType.TEACHER_UNAVAILABLE,
    ConflictType.STUDENT_UNAVAILABLE,
    ConflictType.TEACHER_WRONG_TIME,
    ConflictType.STUDENT_WRONG_TIME,
    ConflictType.NO_SHARED_AVAILABILITY,
)


@dataclass(frozen=True)
class ConflictReason:
    type: ConflictType
    # Session that caused a hard overlap, when there is one.
    conflicting_session_id: uuid.UUID | None = None

    @property
    def is_hard(self) -> bool:
        return self.type in HARD_CONFLICT_TYPES


def is_hard_conflict_type(conflict_type: ConflictType | str) -> bool:
    try:
        return ConflictType(conflict_type) in HARD_CONFLICT_TYPES
    except ValueError:
        return False


def is_availability_conflict_type(conflict_type: ConflictType | str) -> bool:
    try:
        return ConflictType(conflict_type) in AVAILABILITY_CONFLICT_TYPES
    except ValueError:
        return False


def has_hard_conflict(reasons: Iterable[ConflictReason]) -> bool:
    return any(r.is_hard for r in reasons)
