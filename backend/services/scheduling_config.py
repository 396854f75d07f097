from __future__ import annotations

import logging
import uuid
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.scheduling_config import BranchSchedulingConfig, SchedulingConfig
from schemas.scheduling_config import AllowOutsideAvailability, SchedulingPolicy, SchedulingPolicyOverride
from services.conflict_types import ConflictType


logger = logging.getLogger(__name__)


# Flat column name for each markable conflict type (same names on both config tables).
MARK_FIELDS: dict[ConflictType, str] = {
    ConflictType.TEACHER_CONFLICT: "mark_teacher_conflict",
    ConflictType.STUDENT_CONFLICT: "mark_student_conflict",
    ConflictType.BOOTH_CONFLICT: "mark_booth_conflict",
    ConflictType.TEACHER_UNAVAILABLE: "mark_teacher_unavailable",
    ConflictType.STUDENT_UNAVAILABLE: "mark_student_unavailable",
    ConflictType.TEACHER_WRONG_TIME: "mark_teacher_wrong_time",
    ConflictType.STUDENT_WRONG_TIME: "mark_student_wrong_time",
    ConflictType.NO_SHARED_AVAILABILITY: "mark_no_shared_availability",
}
ALLOW_OUTSIDE_FIELDS: dict[str, str] = {
    "teacher": "allow_outside_availability_teacher",
    "student": "allow_outside_availability_student",
}
POLICY_FIELDS: tuple[str, ...] = (
    *MARK_FIELDS.values(),
    *ALLOW_OUTSIDE_FIELDS.values(),
    "generation_months",
)

DEFAULT_POLICY_FIELDS: dict[str, Any] = {
    "mark_teacher_conflict": True,
    "mark_student_conflict": True,
    "mark_booth_conflict": True,
    "mark_teacher_unavailable": False,
    "mark_student_unavailable": False,
    "mark_teacher_wrong_time": False,
    "mark_student_wrong_time": False,
    "mark_no_shared_availability": False,
    "allow_outside_availability_teacher": False,
    "allow_outside_availability_student": False,
    "generation_months": 1,
}


def merge_policy_layers(*layers: Mapping[str, Any] | None) -> dict[str, Any]:
    """Apply layers over the hardcoded defaults, lowest precedence first.

    A layer only wins for fields it sets to a non-null value.
    """

    merged = dict(DEFAULT_POLICY_FIELDS)
    for layer in layers:
        if not layer:
            continue
        for field in POLICY_FIELDS:
            value = layer.get(field)
            if value is not None:
                merged[field] = value
    return merged


def fields_from_row(row: SchedulingConfig | BranchSchedulingConfig | None) -> dict[str, Any] | None:
    if row is None:
        return None
    return {field: getattr(row, field, None) for field in POLICY_FIELDS}


def fields_from_override(override: SchedulingPolicyOverride | None) -> dict[str, Any]:
    if override is None:
        return {}

    fields: dict[str, Any] = {}
    for conflict_type, value in (override.mark_as_conflicted or {}).items():
        if value is not None:
            fields[MARK_FIELDS[conflict_type]] = bool(value)
    allow = override.allow_outside_availability
    if allow is not None:
        for side, field in ALLOW_OUTSIDE_FIELDS.items():
            value = getattr(allow, side)
            if value is not None:
                fields[field] = bool(value)
    if override.generation_months is not None:
        fields["generation_months"] = int(override.generation_months)
    return fields


def policy_from_fields(fields: Mapping[str, Any]) -> SchedulingPolicy:
    return SchedulingPolicy(
        mark_as_conflicted={t: bool(fields[f]) for t, f in MARK_FIELDS.items()},
        allow_outside_availability=AllowOutsideAvailability(
            teacher=bool(fields["allow_outside_availability_teacher"]),
            student=bool(fields["allow_outside_availability_student"]),
        ),
        generation_months=max(1, int(fields["generation_months"] or 1)),
    )


def policy_override_from_json(raw: Any) -> SchedulingPolicyOverride | None:
    """Parse a stored series override; unreadable payloads are ignored."""

    if raw is None:
        return None
    if isinstance(raw, SchedulingPolicyOverride):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring non-object series conflict policy: %r", raw)
        return None
    try:
        return SchedulingPolicyOverride.model_validate(raw)
    except ValueError:
        logger.warning("Ignoring invalid series conflict policy: %r", raw, exc_info=True)
        return None


def _load_global_config(db: Session) -> SchedulingConfig | None:
    # Savepoint: a failed read must not poison the caller's transaction.
    try:
        with db.begin_nested():
            return db.execute(select(SchedulingConfig).limit(1)).scalars().first()
    except SQLAlchemyError:
        logger.warning("Global scheduling config unreadable; using defaults", exc_info=True)
        return None


def _load_branch_config(db: Session, branch_id: uuid.UUID) -> BranchSchedulingConfig | None:
    try:
        with db.begin_nested():
            return (
                db.execute(select(BranchSchedulingConfig).where(BranchSchedulingConfig.branch_id == branch_id))
                .scalars()
                .first()
            )
    except SQLAlchemyError:
        logger.warning("Branch scheduling config unreadable for %s; using global", branch_id, exc_info=True)
        return None


def resolve_effective_policy(
    db: Session,
    branch_id: uuid.UUID | None = None,
    series_override: SchedulingPolicyOverride | Mapping[str, Any] | None = None,
) -> SchedulingPolicy:
    """Effective policy: defaults -> global config -> branch override -> series override."""

    global_fields = fields_from_row(_load_global_config(db))
    branch_fields = fields_from_row(_load_branch_config(db, branch_id)) if branch_id is not None else None
    series_fields = fields_from_override(policy_override_from_json(series_override))

    return policy_from_fields(merge_policy_layers(global_fields, branch_fields, series_fields))


def upsert_branch_policy(
    db: Session,
    branch_id: uuid.UUID,
    patch: SchedulingPolicyOverride,
) -> BranchSchedulingConfig | None:
    """Persist the fields set in ``patch`` as branch overrides. Empty patches are a no-op."""

    fields = fields_from_override(patch)
    if not fields:
        return None

    row = _load_branch_config(db, branch_id)
    if row is None:
        row = BranchSchedulingConfig(branch_id=branch_id)
        db.add(row)
    for field, value in fields.items():
        setattr(row, field, value)

    db.commit()
    db.refresh(row)
    logger.info("Updated branch scheduling policy branch_id=%s fields=%s", branch_id, sorted(fields))
    return row
