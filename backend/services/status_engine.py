from __future__ import annotations

import logging
import uuid
from typing import Iterable

from sqlalchemy.orm import Session

from models.class_session import ClassSession
from schemas.scheduling_config import SchedulingPolicy
from services.availability import AvailabilityOracle
from services.conflict_classifier import classify
from services.conflict_types import ConflictReason, SessionStatus, has_hard_conflict
from services.placement import placement_from_session
from services.scheduling_config import resolve_effective_policy


logger = logging.getLogger(__name__)


def decide(reasons: Iterable[ConflictReason], policy: SchedulingPolicy) -> SessionStatus:
    """Reduce conflict reasons to a session status.

    Hard overlaps always conflict, whatever the policy says about them; any
    other reason conflicts only when the policy marks its type.
    """

    reasons = list(reasons)
    if has_hard_conflict(reasons):
        return SessionStatus.CONFLICTED
    if any(policy.is_marked(r.type) for r in reasons):
        return SessionStatus.CONFLICTED
    return SessionStatus.CONFIRMED


def classify_and_decide(
    db: Session,
    session: ClassSession,
    *,
    oracle: AvailabilityOracle | None = None,
) -> tuple[list[ConflictReason], SessionStatus]:
    placement = placement_from_session(session)
    policy = resolve_effective_policy(db, session.branch_id)
    reasons = classify(db, placement, session.id, oracle=oracle, policy=policy)
    return reasons, decide(reasons, policy)


def recompute_and_persist_status(
    db: Session,
    session_id: uuid.UUID,
    *,
    oracle: AvailabilityOracle | None = None,
) -> SessionStatus | None:
    """Re-run classify/decide for one stored session and write the status if it changed.

    Returns None when the session does not exist. Cancelled sessions keep
    their stored status untouched.
    """

    session = db.get(ClassSession, session_id)
    if session is None:
        return None
    if session.is_cancelled:
        return SessionStatus(session.status)

    _reasons, status = classify_and_decide(db, session, oracle=oracle)
    if status.value != session.status:
        logger.info("Session %s status %s -> %s", session.id, session.status, status.value)
        session.status = status.value
        db.commit()
    return status
