from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, time
from typing import Protocol

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from models.student import Student
from models.teacher import Teacher
from models.user_availability import UserAvailability
from models.vacation import Vacation
from services.placement import minutes_of_day, weekday_index
from services.vacations import is_vacation_date, load_branch_vacations


logger = logging.getLogger(__name__)

FULL_DAY_WINDOW: tuple[int, int] = (0, 23 * 60 + 59)

# Minute-of-day window [start, end).
Window = tuple[int, int]


class AvailabilityConflictKind(str, enum.Enum):
    # No availability recorded for that day at all.
    UNAVAILABLE = "UNAVAILABLE"
    # Availability exists that day, but the requested window falls outside it.
    WRONG_TIME = "WRONG_TIME"


@dataclass(frozen=True)
class UserAvailabilityDetails:
    available: bool
    conflict_type: AvailabilityConflictKind | None = None
    effective_slots: tuple[Window, ...] = ()
    has_exceptions: bool = False


@dataclass(frozen=True)
class SharedAvailability:
    user1: UserAvailabilityDetails
    user2: UserAvailabilityDetails
    available: bool
    shared_slots: tuple[Window, ...] = field(default_factory=tuple)
    message: str | None = None


class AvailabilityOracle(Protocol):
    def get_shared_availability(
        self,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        *,
        skip_vacation_check: bool = False,
    ) -> SharedAvailability: ...


def merge_windows(windows: list[Window]) -> list[Window]:
    merged: list[Window] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def intersect_windows(a: list[Window], b: list[Window]) -> list[Window]:
    out: list[Window] = []
    for a_start, a_end in a:
        for b_start, b_end in b:
            start, end = max(a_start, b_start), min(a_end, b_end)
            if start < end:
                out.append((start, end))
    return merge_windows(out)


def subtract_windows(base: list[Window], remove: list[Window]) -> list[Window]:
    remaining = merge_windows(base)
    for r_start, r_end in merge_windows(remove):
        nxt: list[Window] = []
        for b_start, b_end in remaining:
            if r_end <= b_start or r_start >= b_end:
                nxt.append((b_start, b_end))
                continue
            if r_start > b_start:
                nxt.append((b_start, r_start))
            if r_end < b_end:
                nxt.append((r_end, b_end))
        remaining = merge_windows(nxt)
        if not remaining:
            break
    return remaining


def window_contains(windows: list[Window] | tuple[Window, ...], start: int, end: int) -> bool:
    return any(w_start <= start and end <= w_end for w_start, w_end in windows)


def _row_window(row: UserAvailability) -> Window | None:
    if row.full_day:
        return FULL_DAY_WINDOW
    if row.start_time is None or row.end_time is None:
        return None
    return (minutes_of_day(row.start_time), minutes_of_day(row.end_time))


class DbAvailabilityOracle:
    """Availability oracle backed by approved ``user_availability`` rows.

    Dated EXCEPTION slots replace the weekly REGULAR slots for that day;
    ABSENCE slots are cut out of whatever remains.

    The vacation pre-check is scoped to ``branch_id`` when one is given. An
    oracle built without a branch treats every branch's vacation as closing
    the day for everyone.
    """

    def __init__(self, db: Session, branch_id: uuid.UUID | None = None) -> None:
        self.db = db
        self.branch_id = branch_id

    def _vacations(self) -> list[Vacation]:
        if self.branch_id is not None:
            return load_branch_vacations(self.db, self.branch_id)
        return self.db.execute(select(Vacation)).scalars().all()

    def _effective_slots(self, user_id: uuid.UUID, on_date: date) -> tuple[list[Window], bool]:
        rows = (
            self.db.execute(
                select(UserAvailability)
                .where(UserAvailability.user_id == user_id)
                .where(UserAvailability.status == "APPROVED")
                .where(
                    or_(
                        UserAvailability.date == on_date,
                        and_(
                            UserAvailability.type == "REGULAR",
                            UserAvailability.day_of_week == weekday_index(on_date),
                        ),
                    )
                )
            )
            .scalars()
            .all()
        )

        by_type: dict[str, list[Window]] = {"REGULAR": [], "EXCEPTION": [], "ABSENCE": []}
        for row in rows:
            window = _row_window(row)
            if window is None:
                continue
            if row.type == "REGULAR" and row.date is not None:
                continue
            by_type.setdefault(row.type, []).append(window)

        exceptions = by_type["EXCEPTION"]
        effective = merge_windows(exceptions) if exceptions else merge_windows(by_type["REGULAR"])
        if by_type["ABSENCE"]:
            effective = subtract_windows(effective, by_type["ABSENCE"])
        return effective, bool(exceptions)

    def get_user_availability(
        self,
        user_id: uuid.UUID,
        on_date: date,
        start_time: time,
        end_time: time,
    ) -> UserAvailabilityDetails:
        slots, has_exceptions = self._effective_slots(user_id, on_date)
        if not slots:
            return UserAvailabilityDetails(
                available=False,
                conflict_type=AvailabilityConflictKind.UNAVAILABLE,
                has_exceptions=has_exceptions,
            )

        if window_contains(slots, minutes_of_day(start_time), minutes_of_day(end_time)):
            return UserAvailabilityDetails(available=True, effective_slots=tuple(slots), has_exceptions=has_exceptions)
        return UserAvailabilityDetails(
            available=False,
            conflict_type=AvailabilityConflictKind.WRONG_TIME,
            effective_slots=tuple(slots),
            has_exceptions=has_exceptions,
        )

    def get_shared_availability(
        self,
        user1_id: uuid.UUID,
        user2_id: uuid.UUID,
        on_date: date,
        start_time: time,
        end_time: time,
        *,
        skip_vacation_check: bool = False,
    ) -> SharedAvailability:
        if not skip_vacation_check:
            if is_vacation_date(on_date, self._vacations()):
                closed = UserAvailabilityDetails(available=False, conflict_type=AvailabilityConflictKind.UNAVAILABLE)
                return SharedAvailability(user1=closed, user2=closed, available=False, message="VACATION")

        user1 = self.get_user_availability(user1_id, on_date, start_time, end_time)
        user2 = self.get_user_availability(user2_id, on_date, start_time, end_time)

        shared = intersect_windows(list(user1.effective_slots), list(user2.effective_slots))
        if not shared:
            return SharedAvailability(
                user1=user1,
                user2=user2,
                available=False,
                message="NO_SHARED_SLOTS",
            )

        available = window_contains(shared, minutes_of_day(start_time), minutes_of_day(end_time))
        return SharedAvailability(
            user1=user1,
            user2=user2,
            available=available,
            shared_slots=tuple(shared),
            message=None if available else "OUTSIDE_SHARED_SLOTS",
        )


def resolve_user_ids(
    db: Session,
    teacher_id: uuid.UUID,
    student_id: uuid.UUID,
) -> tuple[uuid.UUID, uuid.UUID] | None:
    """Map teacher/student business ids to the person ids availability is recorded under."""

    teacher_user_id = db.execute(select(Teacher.user_id).where(Teacher.id == teacher_id)).scalar_one_or_none()
    student_user_id = db.execute(select(Student.user_id).where(Student.id == student_id)).scalar_one_or_none()
    if teacher_user_id is None or student_user_id is None:
        logger.debug(
            "Person lookup incomplete teacher_id=%s student_id=%s; skipping availability",
            teacher_id,
            student_id,
        )
        return None
    return teacher_user_id, student_user_id
