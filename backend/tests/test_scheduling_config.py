import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy import text

from models.scheduling_config import BranchSchedulingConfig, SchedulingConfig
from schemas.scheduling_config import SchedulingPolicy, SchedulingPolicyOverride
from services.conflict_types import ConflictType
from services.scheduling_config import (
    merge_policy_layers,
    policy_override_from_json,
    resolve_effective_policy,
    upsert_branch_policy,
)


def test_defaults_without_any_config(db):
    policy = resolve_effective_policy(db)
    assert policy.is_marked(ConflictType.TEACHER_CONFLICT)
    assert policy.is_marked(ConflictType.BOOTH_CONFLICT)
    assert not policy.is_marked(ConflictType.TEACHER_WRONG_TIME)
    assert not policy.allow_outside_availability.teacher
    assert policy.generation_months == 1


def test_global_config_replaces_defaults(db):
    db.add(SchedulingConfig(mark_teacher_wrong_time=True, generation_months=2))
    db.commit()

    policy = resolve_effective_policy(db, uuid.uuid4())
    assert policy.is_marked(ConflictType.TEACHER_WRONG_TIME)
    assert policy.generation_months == 2


def test_branch_override_wins_only_where_set(db):
    branch = uuid.uuid4()
    db.add(SchedulingConfig(mark_teacher_wrong_time=False, mark_student_wrong_time=True))
    db.add(BranchSchedulingConfig(branch_id=branch, mark_teacher_wrong_time=True))
    db.commit()

    policy = resolve_effective_policy(db, branch)
    assert policy.is_marked(ConflictType.TEACHER_WRONG_TIME)
    # Null branch column inherits the global value.
    assert policy.is_marked(ConflictType.STUDENT_WRONG_TIME)

    other = resolve_effective_policy(db, uuid.uuid4())
    assert not other.is_marked(ConflictType.TEACHER_WRONG_TIME)


def test_series_override_sits_on_top(db):
    branch = uuid.uuid4()
    db.add(BranchSchedulingConfig(branch_id=branch, allow_outside_availability_teacher=False))
    db.commit()

    policy = resolve_effective_policy(
        db,
        branch,
        {"allow_outside_availability": {"teacher": True}, "mark_as_conflicted": {"BOOTH_CONFLICT": False}},
    )
    assert policy.allow_outside_availability.teacher
    assert not policy.allow_outside_availability.student
    assert not policy.is_marked(ConflictType.BOOTH_CONFLICT)
    assert policy.is_marked(ConflictType.TEACHER_CONFLICT)


def test_merge_skips_null_values():
    merged = merge_policy_layers({"mark_teacher_conflict": False}, {"mark_teacher_conflict": None}, None)
    assert merged["mark_teacher_conflict"] is False


def test_invalid_series_override_is_ignored(db):
    assert policy_override_from_json(["not", "an", "object"]) is None
    assert policy_override_from_json({"mark_as_conflicted": {"VACATION": True}}) is None
    policy = resolve_effective_policy(db, None, {"generation_months": 0})
    assert policy.generation_months == 1


def test_vacation_cannot_be_marked():
    with pytest.raises(ValidationError):
        SchedulingPolicy(mark_as_conflicted={ConflictType.VACATION: True})


def test_upsert_branch_policy_creates_then_updates(db):
    branch = uuid.uuid4()
    row = upsert_branch_policy(
        db,
        branch,
        SchedulingPolicyOverride(mark_as_conflicted={ConflictType.NO_SHARED_AVAILABILITY: True}),
    )
    assert row.mark_no_shared_availability is True
    assert row.mark_teacher_conflict is None

    upsert_branch_policy(db, branch, SchedulingPolicyOverride(generation_months=3))
    rows = db.query(BranchSchedulingConfig).filter_by(branch_id=branch).all()
    assert len(rows) == 1
    assert rows[0].generation_months == 3
    assert rows[0].mark_no_shared_availability is True


def test_upsert_branch_policy_empty_patch_is_noop(db):
    assert upsert_branch_policy(db, uuid.uuid4(), SchedulingPolicyOverride()) is None
    assert db.query(BranchSchedulingConfig).count() == 0


def test_unreadable_global_config_falls_back_to_defaults(db, sql_log):
    branch = uuid.uuid4()
    db.add(BranchSchedulingConfig(branch_id=branch, mark_teacher_wrong_time=True))
    db.execute(text("DROP TABLE scheduling_config"))
    db.commit()
    sql_log.clear()

    policy = resolve_effective_policy(db, branch)

    assert any(s.startswith("ROLLBACK TO SAVEPOINT") for s in sql_log)
    assert policy.is_marked(ConflictType.TEACHER_WRONG_TIME)
    assert policy.is_marked(ConflictType.TEACHER_CONFLICT)
    assert db.query(BranchSchedulingConfig).count() == 1
