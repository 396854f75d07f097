from __future__ import annotations

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.class_session import ClassSession
from schemas.scheduling_config import SchedulingPolicy
from services.availability import AvailabilityConflictKind, AvailabilityOracle, DbAvailabilityOracle, resolve_user_ids
from services.conflict_types import ConflictReason, ConflictType
from services.placement import SessionPlacement, build_resource_intersection_filter, shared_resources, windows_overlap
from services.scheduling_config import resolve_effective_policy


logger = logging.getLogger(__name__)

_HARD_TYPE_BY_RESOURCE: dict[str, ConflictType] = {
    "teacher": ConflictType.TEACHER_CONFLICT,
    "student": ConflictType.STUDENT_CONFLICT,
    "booth": ConflictType.BOOTH_CONFLICT,
}


def same_day_candidates(
    db: Session,
    placement: SessionPlacement,
    exclude_id: uuid.UUID | None,
) -> list[ClassSession]:
    """Non-cancelled sessions on the placement's date sharing any of its resources."""

    q = (
        select(ClassSession)
        .where(ClassSession.is_cancelled.is_(False))
        .where(ClassSession.date == placement.date)
        .where(
            build_resource_intersection_filter(
                placement.teacher_id,
                placement.student_id,
                placement.booth_id,
            )
        )
    )
    if exclude_id is not None:
        q = q.where(ClassSession.id != exclude_id)
    return db.execute(q).scalars().all()


def find_hard_conflicts(
    db: Session,
    placement: SessionPlacement,
    exclude_id: uuid.UUID | None,
) -> list[ConflictReason]:
    if not placement.has_resources:
        return []

    reasons: list[ConflictReason] = []
    for other in same_day_candidates(db, placement, exclude_id):
        if not windows_overlap(placement.start_time, placement.end_time, other.start_time, other.end_time):
            continue
        for resource in shared_resources(placement, other):
            reasons.append(ConflictReason(type=_HARD_TYPE_BY_RESOURCE[resource], conflicting_session_id=other.id))
    return reasons


def find_availability_conflict(
    db: Session,
    placement: SessionPlacement,
    *,
    oracle: AvailabilityOracle,
    policy: SchedulingPolicy | None = None,
) -> ConflictReason | None:
    """At most one soft reason for the teacher/student pair (teacher side wins)."""

    if placement.teacher_id is None or placement.student_id is None:
        return None

    user_ids = resolve_user_ids(db, placement.teacher_id, placement.student_id)
    if user_ids is None:
        return None
    teacher_user_id, student_user_id = user_ids

    # Vacation is filtered before classification ever runs.
    avail = oracle.get_shared_availability(
        teacher_user_id,
        student_user_id,
        placement.date,
        placement.start_time,
        placement.end_time,
        skip_vacation_check=True,
    )
    if avail.available:
        return None

    if policy is None:
        policy = resolve_effective_policy(db, placement.branch_id)
    allow_outside = policy.allow_outside_availability

    if not avail.user1.available:
        if allow_outside.teacher:
            return None
        if avail.user1.conflict_type == AvailabilityConflictKind.UNAVAILABLE:
            return ConflictReason(type=ConflictType.TEACHER_UNAVAILABLE)
        return ConflictReason(type=ConflictType.TEACHER_WRONG_TIME)

    if not avail.user2.available:
        if allow_outside.student:
            return None
        if avail.user2.conflict_type == AvailabilityConflictKind.UNAVAILABLE:
            return ConflictReason(type=ConflictType.STUDENT_UNAVAILABLE)
        return ConflictReason(type=ConflictType.STUDENT_WRONG_TIME)

    return ConflictReason(type=ConflictType.NO_SHARED_AVAILABILITY)


def classify(
    db: Session,
    placement: SessionPlacement,
    exclude_id: uuid.UUID | None = None,
    *,
    oracle: AvailabilityOracle | None = None,
    policy: SchedulingPolicy | None = None,
) -> list[ConflictReason]:
    """Typed conflict reasons for a placement: hard overlaps first, then at most one soft reason.

    ``exclude_id`` is the session's own id when re-checking an existing row.
    ``policy`` lets callers that already resolved a (series-level) policy
    reuse it for the allow-outside-availability toggles; otherwise the
    placement's branch policy is resolved on demand.

    Availability problems (oracle errors, missing person records) never fail
    classification; they only drop the soft reason.
    """

    reasons = find_hard_conflicts(db, placement, exclude_id)

    if placement.teacher_id is not None and placement.student_id is not None:
        try:
            # A failed lookup rolls back only this savepoint, never the caller's transaction.
            with db.begin_nested():
                soft = find_availability_conflict(
                    db,
                    placement,
                    oracle=oracle if oracle is not None else DbAvailabilityOracle(db, placement.branch_id),
                    policy=policy,
                )
        except Exception:
            logger.warning(
                "Availability check failed date=%s teacher_id=%s student_id=%s; ignoring",
                placement.date,
                placement.teacher_id,
                placement.student_id,
                exc_info=True,
            )
            soft = None
        if soft is not None:
            reasons.append(soft)

    return reasons
