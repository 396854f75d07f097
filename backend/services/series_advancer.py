from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Iterator

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from models.class_series import ClassSeries
from models.class_session import ClassSession
from services.availability import AvailabilityOracle
from services.class_types import has_ancestor_named
from services.conflict_classifier import classify
from services.conflict_types import SessionStatus, has_hard_conflict
from services.neighbor_recompute import recompute_neighbors
from services.placement import SessionPlacement, weekday_index
from services.scheduling_config import resolve_effective_policy
from services.status_engine import decide
from services.vacations import is_vacation_date, load_branch_vacations


logger = logging.getLogger(__name__)

# Stands in for the not-yet-created row when excluding "self" from overlap searches.
PLACEHOLDER_SESSION_ID = uuid.UUID(int=0)


class SeriesNotFoundError(LookupError):
    """Raised when the series to advance does not exist."""


@dataclass(frozen=True)
class AdvanceWindow:
    from_date: date
    to_date: date


@dataclass
class AdvanceResult:
    series_id: uuid.UUID
    from_date: date | None = None
    to_date: date | None = None
    attempted: int = 0
    created_confirmed: int = 0
    created_conflicted: int = 0
    # Vacation days, already-generated days and store-level constraint rejections.
    skipped: int = 0
    series_deleted: bool = False


@dataclass
class AdvanceBatchResult:
    processed: int = 0
    up_to_date: int = 0
    failed: int = 0
    created_confirmed: int = 0
    created_conflicted: int = 0
    skipped: int = 0
    details: list[AdvanceResult] = field(default_factory=list)


def compute_advance_window(
    today: date,
    last_generated_through: date | None,
    start_date: date,
    end_date: date | None,
    lead_days: int,
) -> AdvanceWindow:
    """Rolling window [from, to] for one advancement run.

    ``from`` resumes the day after the watermark but never precedes the
    series start or today; ``to`` is today + lead days, capped at the hard end.
    """

    start_bound = max(start_date, today)
    from_date = last_generated_through + timedelta(days=1) if last_generated_through else start_bound
    if from_date < start_bound:
        from_date = start_bound

    to_date = today + timedelta(days=max(1, int(lead_days)))
    if end_date is not None and to_date > end_date:
        to_date = end_date
    return AdvanceWindow(from_date=from_date, to_date=to_date)


def normalize_days_of_week(raw: Any) -> set[int]:
    if not isinstance(raw, (list, tuple, set)):
        return set()
    days: set[int] = set()
    for value in raw:
        try:
            day = int(value)
        except (TypeError, ValueError):
            continue
        if 0 <= day <= 6:
            days.add(day)
    return days


def iter_candidate_dates(window: AdvanceWindow, days_of_week: Iterable[int]) -> Iterator[date]:
    days = set(days_of_week)
    if not days:
        return
    current = window.from_date
    while current <= window.to_date:
        if weekday_index(current) in days:
            yield current
        current += timedelta(days=1)


def _duration_minutes(series: ClassSeries) -> int:
    if series.duration:
        return int(series.duration)
    start = datetime.combine(date.min, series.start_time)
    end = datetime.combine(date.min, series.end_time)
    return int((end - start).total_seconds() // 60)


def _identical_session_exists(db: Session, placement: SessionPlacement) -> bool:
    q = (
        select(ClassSession.id)
        .where(ClassSession.is_cancelled.is_(False))
        .where(ClassSession.date == placement.date)
        .where(ClassSession.start_time == placement.start_time)
        .where(ClassSession.end_time == placement.end_time)
    )
    q = q.where(
        ClassSession.teacher_id.is_(None) if placement.teacher_id is None else ClassSession.teacher_id == placement.teacher_id
    )
    q = q.where(
        ClassSession.student_id.is_(None) if placement.student_id is None else ClassSession.student_id == placement.student_id
    )
    return db.execute(q.limit(1)).first() is not None


def advance_series(
    db: Session,
    series_id: uuid.UUID,
    lead_days: int | None = None,
    *,
    today: date | None = None,
    oracle: AvailabilityOracle | None = None,
) -> AdvanceResult:
    """Materialize the series' sessions for the next rolling window and move its watermark.

    Raises SeriesNotFoundError if the series is gone. Everything that goes
    wrong for a single candidate date is counted as ``skipped``.
    """

    series = db.get(ClassSeries, series_id)
    if series is None:
        raise SeriesNotFoundError(str(series_id))

    lead_days = max(1, int(lead_days if lead_days is not None else settings.series_default_lead_days))
    today = today or date.today()

    if has_ancestor_named(
        db,
        series.class_type_id,
        settings.series_excluded_class_type_name,
        max_depth=settings.class_type_max_depth,
    ):
        logger.info("Series %s has an excluded class type; not advancing", series_id)
        return AdvanceResult(
            series_id=series_id,
            from_date=series.start_date,
            to_date=series.last_generated_through or series.start_date,
        )

    window = compute_advance_window(
        today,
        series.last_generated_through,
        series.start_date,
        series.end_date,
        lead_days,
    )
    result = AdvanceResult(series_id=series_id, from_date=window.from_date, to_date=window.to_date)

    if series.end_date is not None and window.from_date > series.end_date:
        logger.info("Series %s fully generated through %s; deleting blueprint", series_id, series.end_date)
        db.delete(series)
        db.commit()
        result.series_deleted = True
        return result

    candidates = list(iter_candidate_dates(window, normalize_days_of_week(series.days_of_week)))
    if not candidates:
        return result

    vacations = load_branch_vacations(db, series.branch_id)
    policy = resolve_effective_policy(db, series.branch_id, series.conflict_policy)
    duration = _duration_minutes(series)
    result.attempted = len(candidates)
    result.from_date = candidates[0]
    result.to_date = candidates[-1]
    hard_conflict_placements: list[SessionPlacement] = []

    for candidate in candidates:
        if is_vacation_date(candidate, vacations):
            result.skipped += 1
            continue

        placement = SessionPlacement(
            date=candidate,
            start_time=series.start_time,
            end_time=series.end_time,
            teacher_id=series.teacher_id,
            student_id=series.student_id,
            booth_id=series.booth_id,
            branch_id=series.branch_id,
        )

        try:
            if _identical_session_exists(db, placement):
                result.skipped += 1
                continue

            reasons = classify(db, placement, PLACEHOLDER_SESSION_ID, oracle=oracle, policy=policy)
            status = decide(reasons, policy)

            session = ClassSession(
                series_id=series.id,
                teacher_id=series.teacher_id,
                student_id=series.student_id,
                subject_id=series.subject_id,
                class_type_id=series.class_type_id,
                booth_id=series.booth_id,
                branch_id=series.branch_id,
                date=candidate,
                start_time=series.start_time,
                end_time=series.end_time,
                duration=duration,
                notes=series.notes,
                status=status.value,
                is_cancelled=False,
            )
            with db.begin_nested():
                db.add(session)
        except IntegrityError:
            logger.info("Series %s: session on %s already exists (constraint); skipping", series_id, candidate)
            result.skipped += 1
            continue
        except SQLAlchemyError:
            logger.warning("Series %s: could not generate session on %s; skipping", series_id, candidate, exc_info=True)
            result.skipped += 1
            continue

        if status == SessionStatus.CONFLICTED:
            result.created_conflicted += 1
        else:
            result.created_confirmed += 1
        if has_hard_conflict(reasons):
            hard_conflict_placements.append(
                SessionPlacement(
                    date=placement.date,
                    start_time=placement.start_time,
                    end_time=placement.end_time,
                    teacher_id=placement.teacher_id,
                    student_id=placement.student_id,
                    booth_id=placement.booth_id,
                    branch_id=placement.branch_id,
                    session_id=session.id,
                )
            )

    last_candidate = candidates[-1]
    if series.end_date is not None and last_candidate >= series.end_date:
        logger.info("Series %s reached its end date %s; deleting blueprint", series_id, series.end_date)
        db.delete(series)
        result.series_deleted = True
    else:
        series.last_generated_through = last_candidate
    db.commit()

    # Sessions already on the grid may now be double-booked against the new ones.
    for placement in hard_conflict_placements:
        try:
            recompute_neighbors(db, None, placement, oracle=oracle)
        except Exception:
            logger.warning("Neighbor recompute failed after generating %s", placement.session_id, exc_info=True)
            db.rollback()

    logger.info(
        "Advanced series %s window=%s..%s attempted=%d confirmed=%d conflicted=%d skipped=%d",
        series_id,
        window.from_date,
        window.to_date,
        result.attempted,
        result.created_confirmed,
        result.created_conflicted,
        result.skipped,
    )
    return result


def advance_due_series(
    db: Session,
    *,
    lead_days: int | None = None,
    branch_id: uuid.UUID | None = None,
    series_id: uuid.UUID | None = None,
    limit: int | None = None,
    today: date | None = None,
    oracle: AvailabilityOracle | None = None,
) -> AdvanceBatchResult:
    """Scheduled-job entry point: advance every series whose horizon is behind.

    Without an explicit ``lead_days`` each series uses its effective
    policy's ``generation_months`` (30 days per month). A failing series is
    logged and counted; the batch carries on.
    """

    today = today or date.today()

    q = select(ClassSeries.id).order_by(ClassSeries.updated_at.asc())
    if branch_id is not None:
        q = q.where(ClassSeries.branch_id == branch_id)
    if series_id is not None:
        q = q.where(ClassSeries.id == series_id)
    if limit is not None:
        q = q.limit(max(1, int(limit)))
    ids = db.execute(q).scalars().all()

    batch = AdvanceBatchResult()
    for sid in ids:
        series = db.get(ClassSeries, sid)
        if series is None:
            continue
        batch.processed += 1

        if lead_days is not None:
            per_series_lead_days = max(1, int(lead_days))
        else:
            policy = resolve_effective_policy(db, series.branch_id, series.conflict_policy)
            per_series_lead_days = max(1, policy.generation_months * 30)

        window = compute_advance_window(
            today,
            series.last_generated_through,
            series.start_date,
            series.end_date,
            per_series_lead_days,
        )
        if series.last_generated_through is not None and series.last_generated_through >= window.to_date:
            batch.up_to_date += 1
            continue

        try:
            res = advance_series(db, sid, per_series_lead_days, today=today, oracle=oracle)
        except SeriesNotFoundError:
            continue
        except Exception:
            logger.exception("Advancing series %s failed", sid)
            db.rollback()
            batch.failed += 1
            continue

        batch.created_confirmed += res.created_confirmed
        batch.created_conflicted += res.created_conflicted
        batch.skipped += res.skipped
        batch.details.append(res)

    logger.info(
        "Series advancement batch processed=%d up_to_date=%d failed=%d confirmed=%d conflicted=%d skipped=%d",
        batch.processed,
        batch.up_to_date,
        batch.failed,
        batch.created_confirmed,
        batch.created_conflicted,
        batch.skipped,
    )
    return batch
