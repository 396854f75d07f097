from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date, time

from sqlalchemy import false, or_
from sqlalchemy.sql.elements import ColumnElement

from models.class_session import ClassSession


@dataclass(frozen=True)
class SessionPlacement:
    """Where a session is (or would be): calendar date, time-of-day window and resources.

    ``session_id`` identifies the session the placement belongs to, so that
    overlap searches can exclude it. It is None for placements that have no
    row yet.
    """

    date: date
    start_time: time
    end_time: time
    teacher_id: uuid.UUID | None = None
    student_id: uuid.UUID | None = None
    booth_id: uuid.UUID | None = None
    branch_id: uuid.UUID | None = None
    session_id: uuid.UUID | None = None

    @property
    def has_resources(self) -> bool:
        return self.teacher_id is not None or self.student_id is not None or self.booth_id is not None


def placement_from_session(session: ClassSession) -> SessionPlacement:
    return SessionPlacement(
        date=session.date,
        start_time=session.start_time,
        end_time=session.end_time,
        teacher_id=session.teacher_id,
        student_id=session.student_id,
        booth_id=session.booth_id,
        branch_id=session.branch_id,
        session_id=session.id,
    )


def minutes_of_day(t: time) -> int:
    return t.hour * 60 + t.minute


def windows_overlap(start_a: time, end_a: time, start_b: time, end_b: time) -> bool:
    # Half-open windows [start, end): touching endpoints do not overlap.
    return start_a < end_b and start_b < end_a


def weekday_index(d: date) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday (the series/availability convention)."""

    return (d.weekday() + 1) % 7


def build_resource_intersection_filter(
    teacher_id: uuid.UUID | None = None,
    student_id: uuid.UUID | None = None,
    booth_id: uuid.UUID | None = None,
) -> ColumnElement[bool]:
    """Match sessions sharing at least one of the given resources.

    Always returns a usable predicate: with no resources it never matches.
    """

    clauses = []
    if teacher_id is not None:
        clauses.append(ClassSession.teacher_id == teacher_id)
    if student_id is not None:
        clauses.append(ClassSession.student_id == student_id)
    if booth_id is not None:
        clauses.append(ClassSession.booth_id == booth_id)
    if not clauses:
        return false()
    return or_(*clauses)


def build_time_overlap_filter(start_time: time, end_time: time) -> ColumnElement[bool]:
    return (ClassSession.start_time < end_time) & (ClassSession.end_time > start_time)


def shared_resources(placement: SessionPlacement, other: ClassSession) -> list[str]:
    shared: list[str] = []
    if placement.teacher_id is not None and other.teacher_id == placement.teacher_id:
        shared.append("teacher")
    if placement.student_id is not None and other.student_id == placement.student_id:
        shared.append("student")
    if placement.booth_id is not None and other.booth_id == placement.booth_id:
        shared.append("booth")
    return shared
