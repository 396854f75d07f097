from datetime import date, time
import uuid

import pytest

import services.series_advancer as series_advancer
from conftest import ScriptedOracle, shared
from models.class_series import ClassSeries
from models.class_session import ClassSession
from models.class_type import ClassType
from models.scheduling_config import SchedulingConfig
from models.vacation import Vacation
from services.availability import AvailabilityConflictKind
from services.series_advancer import (
    SeriesNotFoundError,
    advance_due_series,
    advance_series,
    compute_advance_window,
    iter_candidate_dates,
    normalize_days_of_week,
)


NEW_YEAR = date(2025, 1, 1)
MON_WED_FRI = [1, 3, 5]


@pytest.fixture
def make_series(db):
    def _make(**kwargs) -> ClassSeries:
        values = {
            "teacher_id": uuid.uuid4(),
            "start_date": NEW_YEAR,
            "days_of_week": MON_WED_FRI,
            "start_time": time(9, 0),
            "end_time": time(10, 0),
        }
        values.update(kwargs)
        series = ClassSeries(**values)
        db.add(series)
        db.commit()
        db.refresh(series)
        return series

    return _make


def _sessions(db, series_id):
    return (
        db.query(ClassSession)
        .filter(ClassSession.series_id == series_id)
        .order_by(ClassSession.date)
        .all()
    )


def test_compute_advance_window():
    window = compute_advance_window(NEW_YEAR, None, NEW_YEAR, None, 7)
    assert (window.from_date, window.to_date) == (NEW_YEAR, date(2025, 1, 8))

    resumed = compute_advance_window(date(2025, 1, 5), date(2025, 1, 8), NEW_YEAR, None, 7)
    assert (resumed.from_date, resumed.to_date) == (date(2025, 1, 9), date(2025, 1, 12))

    # A stale watermark never reaches back before today.
    stale = compute_advance_window(date(2025, 2, 1), date(2025, 1, 8), NEW_YEAR, None, 7)
    assert stale.from_date == date(2025, 2, 1)

    capped = compute_advance_window(NEW_YEAR, None, NEW_YEAR, date(2025, 1, 4), 30)
    assert capped.to_date == date(2025, 1, 4)


def test_normalize_days_of_week():
    assert normalize_days_of_week([1, "3", 9, None, 5]) == {1, 3, 5}
    assert normalize_days_of_week("1,3") == set()


def test_iter_candidate_dates():
    window = compute_advance_window(NEW_YEAR, None, NEW_YEAR, None, 7)
    assert list(iter_candidate_dates(window, MON_WED_FRI)) == [
        date(2025, 1, 1),
        date(2025, 1, 3),
        date(2025, 1, 6),
        date(2025, 1, 8),
    ]
    assert list(iter_candidate_dates(window, [])) == []


def test_first_week_is_generated(db, make_series):
    series = make_series()

    result = advance_series(db, series.id, 7, today=NEW_YEAR)

    assert result.attempted == 4
    assert result.created_confirmed == 4
    assert result.skipped == 0
    assert (result.from_date, result.to_date) == (date(2025, 1, 1), date(2025, 1, 8))
    sessions = _sessions(db, series.id)
    assert [s.date for s in sessions] == [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 6), date(2025, 1, 8)]
    assert all(s.status == "CONFIRMED" and s.duration == 60 for s in sessions)
    db.refresh(series)
    assert series.last_generated_through == date(2025, 1, 8)


def test_vacation_day_is_skipped(db, make_series):
    branch = uuid.uuid4()
    db.add(Vacation(branch_id=branch, name="Closed", start_date=date(2025, 1, 3), end_date=date(2025, 1, 3)))
    db.commit()
    series = make_series(branch_id=branch)

    result = advance_series(db, series.id, 7, today=NEW_YEAR)

    assert result.skipped == 1
    assert result.created_confirmed == 3
    assert date(2025, 1, 3) not in [s.date for s in _sessions(db, series.id)]
    db.refresh(series)
    assert series.last_generated_through == date(2025, 1, 8)


def test_cancelled_session_in_same_slot_is_skipped(db, make_series, make_session):
    teacher, student = uuid.uuid4(), uuid.uuid4()
    make_session(on_date=date(2025, 1, 3), teacher_id=teacher, student_id=student, is_cancelled=True)
    series = make_series(teacher_id=teacher, student_id=student)

    result = advance_series(db, series.id, 7, today=NEW_YEAR)

    assert result.attempted == 4
    assert result.skipped == 1
    assert result.created_confirmed == 3
    assert [s.date for s in _sessions(db, series.id)] == [date(2025, 1, 1), date(2025, 1, 6), date(2025, 1, 8)]
    db.refresh(series)
    assert series.last_generated_through == date(2025, 1, 8)


def test_rerun_creates_no_duplicates(db, make_series):
    series = make_series()
    advance_series(db, series.id, 7, today=NEW_YEAR)

    again = advance_series(db, series.id, 7, today=NEW_YEAR)
    assert again.attempted == 0
    db.refresh(series)
    assert series.last_generated_through == date(2025, 1, 8)

    series.last_generated_through = None
    db.commit()
    replay = advance_series(db, series.id, 7, today=NEW_YEAR)
    assert replay.skipped == 4
    assert replay.created_confirmed == replay.created_conflicted == 0
    assert len(_sessions(db, series.id)) == 4


def test_series_reaching_end_date_is_deleted(db, make_series):
    series = make_series(end_date=date(2025, 1, 6))
    series_id = series.id

    result = advance_series(db, series_id, 30, today=NEW_YEAR)

    assert result.series_deleted
    assert result.created_confirmed == 3
    assert db.get(ClassSeries, series_id) is None
    assert len(_sessions(db, series_id)) == 3


def test_fully_generated_series_is_deleted(db, make_series):
    series = make_series(end_date=date(2025, 1, 6), last_generated_through=date(2025, 1, 6))
    series_id = series.id

    result = advance_series(db, series_id, 7, today=NEW_YEAR)

    assert result.series_deleted
    assert result.attempted == 0
    assert db.get(ClassSeries, series_id) is None


def test_excluded_class_type_is_not_advanced(db, make_series):
    parent = ClassType(id=uuid.uuid4(), name="特別授業")
    child = ClassType(id=uuid.uuid4(), name="Winter intensive", parent_id=parent.id)
    db.add_all([parent, child])
    db.commit()
    series = make_series(class_type_id=child.id)

    result = advance_series(db, series.id, 7, today=NEW_YEAR)

    assert result.attempted == 0
    assert _sessions(db, series.id) == []
    db.refresh(series)
    assert series.last_generated_through is None


def test_missing_series_raises(db):
    with pytest.raises(SeriesNotFoundError):
        advance_series(db, uuid.uuid4(), 7, today=NEW_YEAR)


def test_generated_overlap_is_conflicted_and_neighbor_updated(db, make_series, make_session):
    series = make_series()
    existing = make_session(teacher_id=series.teacher_id, on_date=date(2025, 1, 3), start=time(9, 30), end=time(10, 30))

    result = advance_series(db, series.id, 7, today=NEW_YEAR)

    assert result.created_conflicted == 1
    assert result.created_confirmed == 3
    db.expire_all()
    assert db.get(ClassSession, existing.id).status == "CONFLICTED"


def test_series_policy_override_marks_soft_reasons(db, make_series, make_pair):
    teacher, student = make_pair()
    series = make_series(
        teacher_id=teacher.id,
        student_id=student.id,
        conflict_policy={"mark_as_conflicted": {"TEACHER_WRONG_TIME": True}},
    )
    oracle = ScriptedOracle(shared(teacher=AvailabilityConflictKind.WRONG_TIME))

    result = advance_series(db, series.id, 7, today=NEW_YEAR, oracle=oracle)

    assert result.created_conflicted == 4
    assert len(oracle.calls) == 4


def test_batch_skips_up_to_date_series(db, make_series):
    behind = make_series()
    ahead = make_series(last_generated_through=date(2025, 1, 10))

    batch = advance_due_series(db, lead_days=7, today=NEW_YEAR)

    assert batch.processed == 2
    assert batch.up_to_date == 1
    assert batch.created_confirmed == 4
    assert [d.series_id for d in batch.details] == [behind.id]
    assert _sessions(db, ahead.id) == []


def test_batch_lead_days_follow_generation_months(db, make_series):
    db.add(SchedulingConfig(generation_months=1))
    db.commit()
    series = make_series()

    batch = advance_due_series(db, today=NEW_YEAR)

    assert batch.created_confirmed == 14
    db.refresh(series)
    assert series.last_generated_through == date(2025, 1, 31)


def test_batch_continues_after_a_failure(db, make_series, monkeypatch):
    broken = make_series()
    healthy = make_series()
    real = series_advancer.advance_series

    def flaky(db_, series_id, lead_days=None, **kwargs):
        if series_id == broken.id:
            raise RuntimeError("boom")
        return real(db_, series_id, lead_days, **kwargs)

    monkeypatch.setattr(series_advancer, "advance_series", flaky)

    batch = advance_due_series(db, lead_days=7, today=NEW_YEAR)

    assert batch.failed == 1
    assert [d.series_id for d in batch.details] == [healthy.id]


def test_batch_filters_by_branch(db, make_series):
    branch = uuid.uuid4()
    make_series()
    mine = make_series(branch_id=branch)

    batch = advance_due_series(db, lead_days=7, branch_id=branch, today=NEW_YEAR)

    assert batch.processed == 1
    assert batch.details[0].series_id == mine.id
