from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from services.conflict_types import MARKABLE_TYPES, ConflictType


def _reject_unmarkable(mark: dict[ConflictType, bool] | None) -> dict[ConflictType, bool] | None:
    if mark is None:
        return None
    bad = [t.value for t in mark if t not in MARKABLE_TYPES]
    if bad:
        raise ValueError(f"conflict types cannot be marked: {', '.join(sorted(bad))}")
    return mark


class AllowOutsideAvailability(BaseModel):
    model_config = ConfigDict(frozen=True)

    teacher: bool = False
    student: bool = False


class SchedulingPolicy(BaseModel):
    """Effective, fully populated scheduling policy."""

    model_config = ConfigDict(frozen=True)

    mark_as_conflicted: dict[ConflictType, bool]
    allow_outside_availability: AllowOutsideAvailability = Field(default_factory=AllowOutsideAvailability)
    generation_months: int = Field(default=1, ge=1)

    @field_validator("mark_as_conflicted")
    @classmethod
    def _check_mark_as_conflicted(cls, v: dict[ConflictType, bool]) -> dict[ConflictType, bool]:
        return _reject_unmarkable(v)

    def is_marked(self, conflict_type: ConflictType) -> bool:
        return bool(self.mark_as_conflicted.get(conflict_type, False))


class AllowOutsideAvailabilityPatch(BaseModel):
    teacher: bool | None = None
    student: bool | None = None


class SchedulingPolicyOverride(BaseModel):
    """Partial policy: only keys that are present and non-null override the layer below."""

    mark_as_conflicted: dict[ConflictType, bool] | None = None
    allow_outside_availability: AllowOutsideAvailabilityPatch | None = None
    generation_months: int | None = Field(default=None, ge=1)

    @field_validator("mark_as_conflicted")
    @classmethod
    def _check_mark_as_conflicted(cls, v: dict[ConflictType, bool] | None) -> dict[ConflictType, bool] | None:
        return _reject_unmarkable(v)


class SchedulingPolicyOut(BaseModel):
    branch_id: str | None = None
    policy: SchedulingPolicy
