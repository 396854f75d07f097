from datetime import date, time
import uuid

import pytest
from sqlalchemy import select

from models.class_session import ClassSession
from services.placement import (
    SessionPlacement,
    build_resource_intersection_filter,
    minutes_of_day,
    weekday_index,
    windows_overlap,
)


@pytest.mark.parametrize(
    "a,b,expected",
    [
        ((time(9, 0), time(10, 0)), (time(10, 0), time(11, 0)), False),
        ((time(9, 0), time(10, 1)), (time(10, 0), time(11, 0)), True),
        ((time(9, 0), time(12, 0)), (time(10, 0), time(11, 0)), True),
        ((time(8, 0), time(9, 0)), (time(13, 0), time(14, 0)), False),
    ],
)
def test_windows_overlap_is_symmetric_and_half_open(a, b, expected):
    assert windows_overlap(a[0], a[1], b[0], b[1]) is expected
    assert windows_overlap(b[0], b[1], a[0], a[1]) is expected


def test_weekday_index_starts_on_sunday():
    # 2025-01-05 is a Sunday, 2025-01-01 a Wednesday.
    assert weekday_index(date(2025, 1, 5)) == 0
    assert weekday_index(date(2025, 1, 1)) == 3
    assert weekday_index(date(2025, 1, 4)) == 6


def test_minutes_of_day():
    assert minutes_of_day(time(0, 0)) == 0
    assert minutes_of_day(time(13, 45)) == 825


def test_has_resources():
    d = date(2025, 1, 6)
    assert not SessionPlacement(d, time(9), time(10)).has_resources
    assert SessionPlacement(d, time(9), time(10), booth_id=uuid.uuid4()).has_resources


def test_resource_filter_without_resources_matches_nothing(db, make_session):
    make_session(teacher_id=uuid.uuid4())
    rows = db.execute(select(ClassSession).where(build_resource_intersection_filter())).scalars().all()
    assert rows == []


def test_resource_filter_matches_any_shared_resource(db, make_session):
    teacher, booth = uuid.uuid4(), uuid.uuid4()
    by_teacher = make_session(teacher_id=teacher)
    by_booth = make_session(booth_id=booth, start=time(11), end=time(12))
    make_session(teacher_id=uuid.uuid4(), start=time(13), end=time(14))

    rows = db.execute(
        select(ClassSession.id).where(build_resource_intersection_filter(teacher_id=teacher, booth_id=booth))
    ).scalars().all()
    assert set(rows) == {by_teacher.id, by_booth.id}
