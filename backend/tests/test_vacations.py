from datetime import date
import uuid

from models.vacation import Vacation
from services.vacations import find_covering_vacation, is_vacation_date, vacation_covers


def test_one_off_vacation_is_inclusive():
    v = Vacation(name="Spring", start_date=date(2025, 3, 24), end_date=date(2025, 3, 28), is_recurring=False)
    assert vacation_covers(v, date(2025, 3, 24))
    assert vacation_covers(v, date(2025, 3, 28))
    assert not vacation_covers(v, date(2025, 3, 29))
    assert not vacation_covers(v, date(2026, 3, 25))


def test_recurring_vacation_repeats_every_year():
    v = Vacation(name="Obon", start_date=date(2020, 8, 13), end_date=date(2020, 8, 16), is_recurring=True)
    assert vacation_covers(v, date(2025, 8, 14))
    assert not vacation_covers(v, date(2025, 8, 17))


def test_recurring_vacation_wraps_new_year():
    v = Vacation(name="Winter", start_date=date(2024, 12, 25), end_date=date(2025, 1, 3), is_recurring=True)
    assert vacation_covers(v, date(2025, 12, 31))
    assert vacation_covers(v, date(2026, 1, 2))
    assert not vacation_covers(v, date(2026, 1, 4))
    assert not vacation_covers(v, date(2025, 12, 24))


def test_is_vacation_date_with_no_vacations():
    assert not is_vacation_date(date(2025, 1, 1), [])


def test_find_covering_vacation_is_branch_scoped(db):
    branch = uuid.uuid4()
    db.add(Vacation(branch_id=branch, name="New Year", start_date=date(2025, 1, 1), end_date=date(2025, 1, 3)))
    db.commit()

    assert find_covering_vacation(db, branch, date(2025, 1, 2)).name == "New Year"
    assert find_covering_vacation(db, uuid.uuid4(), date(2025, 1, 2)) is None
    assert find_covering_vacation(db, None, date(2025, 1, 2)) is None
