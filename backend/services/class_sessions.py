from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.class_session import ClassSession
from models.vacation import Vacation
from schemas.class_session import ClassSessionCreate, ClassSessionUpdate
from services.availability import AvailabilityOracle
from services.conflict_classifier import classify, find_hard_conflicts
from services.conflict_types import ConflictReason, SessionStatus
from services.neighbor_recompute import (
    recompute_neighbors,
    recompute_neighbors_for_cancelled,
    recompute_neighbors_for_reactivated,
)
from services.placement import SessionPlacement, placement_from_session
from services.scheduling_config import resolve_effective_policy
from services.status_engine import classify_and_decide, decide, recompute_and_persist_status
from services.vacations import find_covering_vacation


logger = logging.getLogger(__name__)

_PLACEMENT_FIELDS = {"date", "start_time", "end_time", "teacher_id", "student_id", "booth_id", "branch_id"}


class SessionNotFoundError(LookupError):
    """Raised when a class session named by the caller does not exist."""


class VacationConflictError(ValueError):
    """Raised when a session would land on a branch vacation day."""

    def __init__(self, vacation: Vacation, on_date: date) -> None:
        super().__init__(f"{on_date.isoformat()} falls in vacation {vacation.name!r}")
        self.vacation_id = vacation.id
        self.vacation_name = vacation.name
        self.on_date = on_date


class InvalidPlacementError(ValueError):
    """Raised when an update would leave a session ending at or before its start."""


@dataclass(frozen=True)
class SessionConflictReport:
    class_id: uuid.UUID
    stored_status: SessionStatus
    status: SessionStatus
    reasons: list[ConflictReason]


def _minutes_between(start: time, end: time) -> int:
    return (end.hour * 60 + end.minute) - (start.hour * 60 + start.minute)


def _ensure_not_vacation(db: Session, branch_id: uuid.UUID | None, on_date: date) -> None:
    vacation = find_covering_vacation(db, branch_id, on_date)
    if vacation is not None:
        raise VacationConflictError(vacation, on_date)


def _load_sessions(db: Session, class_ids: list[uuid.UUID]) -> list[ClassSession]:
    rows = db.execute(select(ClassSession).where(ClassSession.id.in_(class_ids))).scalars().all()
    found = {row.id for row in rows}
    missing = [cid for cid in class_ids if cid not in found]
    if missing:
        raise SessionNotFoundError(", ".join(str(m) for m in missing))
    return rows


def _recompute_neighbors_quietly(
    db: Session,
    old: SessionPlacement | None,
    new: SessionPlacement | None,
    *,
    oracle: AvailabilityOracle | None,
) -> None:
    try:
        recompute_neighbors(db, old, new, oracle=oracle)
    except Exception:
        logger.warning("Neighbor recompute failed; next mutation will correct it", exc_info=True)
        db.rollback()


def create_class_session(
    db: Session,
    payload: ClassSessionCreate,
    *,
    oracle: AvailabilityOracle | None = None,
) -> tuple[ClassSession, list[ConflictReason]]:
    """Create a single session with its classified status, then settle its neighbours."""

    _ensure_not_vacation(db, payload.branch_id, payload.date)

    placement = SessionPlacement(
        date=payload.date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        teacher_id=payload.teacher_id,
        student_id=payload.student_id,
        booth_id=payload.booth_id,
        branch_id=payload.branch_id,
    )

    reasons: list[ConflictReason] = []
    status = SessionStatus.CONFIRMED
    try:
        policy = resolve_effective_policy(db, payload.branch_id)
        reasons = classify(db, placement, None, oracle=oracle, policy=policy)
        status = decide(reasons, policy)
    except Exception:
        logger.warning("Classification failed for new session on %s; saving as CONFIRMED", payload.date, exc_info=True)
        db.rollback()

    data = payload.model_dump()
    if data.get("duration") is None:
        data["duration"] = _minutes_between(payload.start_time, payload.end_time)
    session = ClassSession(**data, status=status.value, is_cancelled=False)
    db.add(session)
    db.commit()
    db.refresh(session)

    _recompute_neighbors_quietly(db, None, placement_from_session(session), oracle=oracle)
    db.refresh(session)
    return session, reasons


def update_class_session(
    db: Session,
    class_id: uuid.UUID,
    payload: ClassSessionUpdate,
    *,
    oracle: AvailabilityOracle | None = None,
) -> ClassSession:
    """Apply field changes; a changed placement re-evaluates the session and both old and new neighbours."""

    session = db.get(ClassSession, class_id)
    if session is None:
        raise SessionNotFoundError(str(class_id))

    old_placement = placement_from_session(session)
    updates = payload.model_dump(exclude_unset=True)

    new_start = updates.get("start_time", session.start_time)
    new_end = updates.get("end_time", session.end_time)
    if new_end <= new_start:
        raise InvalidPlacementError("end_time must be after start_time")
    if "date" in updates or "branch_id" in updates:
        _ensure_not_vacation(db, updates.get("branch_id", session.branch_id), updates.get("date", session.date))

    for key, value in updates.items():
        setattr(session, key, value)
    if ("start_time" in updates or "end_time" in updates) and "duration" not in updates:
        session.duration = _minutes_between(new_start, new_end)
    db.commit()

    if not _PLACEMENT_FIELDS.intersection(updates):
        db.refresh(session)
        return session

    try:
        recompute_and_persist_status(db, class_id, oracle=oracle)
    except Exception:
        logger.warning("Status recompute failed for session %s; keeping prior status", class_id, exc_info=True)
        db.rollback()

    _recompute_neighbors_quietly(db, old_placement, placement_from_session(session), oracle=oracle)
    db.refresh(session)
    return session


def cancel_class_sessions(
    db: Session,
    class_ids: list[uuid.UUID],
    *,
    cancelled_by_id: uuid.UUID | None = None,
    oracle: AvailabilityOracle | None = None,
) -> list[ClassSession]:
    sessions = _load_sessions(db, class_ids)

    now = datetime.now(timezone.utc)
    removed: list[SessionPlacement] = []
    for session in sessions:
        if session.is_cancelled:
            continue
        session.is_cancelled = True
        session.cancelled_at = now
        session.cancelled_by_id = cancelled_by_id
        removed.append(placement_from_session(session))
    db.commit()

    logger.info("Cancelled %d session(s)", len(removed))
    recompute_neighbors_for_cancelled(db, removed, oracle=oracle)
    return sessions


def reactivate_class_sessions(
    db: Session,
    class_ids: list[uuid.UUID],
    *,
    oracle: AvailabilityOracle | None = None,
) -> list[ClassSession]:
    sessions = _load_sessions(db, class_ids)

    restored: list[SessionPlacement] = []
    for session in sessions:
        if not session.is_cancelled:
            continue
        session.is_cancelled = False
        session.cancelled_at = None
        session.cancelled_by_id = None
        restored.append(placement_from_session(session))
    db.commit()

    logger.info("Reactivated %d session(s)", len(restored))
    recompute_neighbors_for_reactivated(db, restored, oracle=oracle)
    return sessions


def get_session_conflicts(
    db: Session,
    class_id: uuid.UUID,
    *,
    oracle: AvailabilityOracle | None = None,
) -> SessionConflictReport:
    session = db.get(ClassSession, class_id)
    if session is None:
        raise SessionNotFoundError(str(class_id))

    stored = SessionStatus(session.status)
    if session.is_cancelled:
        return SessionConflictReport(class_id=class_id, stored_status=stored, status=stored, reasons=[])

    reasons, status = classify_and_decide(db, session, oracle=oracle)
    return SessionConflictReport(class_id=class_id, stored_status=stored, status=status, reasons=reasons)


@dataclass
class ConfirmFailure:
    class_id: uuid.UUID
    reason: str


@dataclass
class ConfirmResult:
    updated: list[uuid.UUID] = field(default_factory=list)
    failed: list[ConfirmFailure] = field(default_factory=list)


def confirm_class_sessions(db: Session, class_ids: list[uuid.UUID]) -> ConfirmResult:
    """Staff override: mark sessions CONFIRMED despite soft reasons.

    Sessions still overlapping a teacher, student or booth are refused, and so
    are missing or cancelled ones. Failures are reported per id; nothing is raised.
    """

    result = ConfirmResult()
    for class_id in dict.fromkeys(class_ids):
        session = db.get(ClassSession, class_id)
        if session is None:
            result.failed.append(ConfirmFailure(class_id, "CLASS_SESSION_NOT_FOUND"))
            continue
        if session.is_cancelled:
            result.failed.append(ConfirmFailure(class_id, "CLASS_SESSION_CANCELLED"))
            continue

        try:
            with db.begin_nested():
                hard = find_hard_conflicts(db, placement_from_session(session), session.id)
                if not hard:
                    session.status = SessionStatus.CONFIRMED.value
        except SQLAlchemyError:
            logger.warning("Confirm failed for session %s", class_id, exc_info=True)
            result.failed.append(ConfirmFailure(class_id, "UPDATE_FAILED"))
            continue

        if hard:
            result.failed.append(ConfirmFailure(class_id, "HARD_CONFLICT"))
        else:
            result.updated.append(class_id)
    db.commit()

    logger.info("Confirmed %d session(s), %d refused", len(result.updated), len(result.failed))
    return result
