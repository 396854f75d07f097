from __future__ import annotations

import uuid
from datetime import date
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.vacation import Vacation


def _month_day(d: date) -> int:
    return d.month * 100 + d.day


def vacation_covers(vacation: Vacation, on_date: date) -> bool:
    if not vacation.is_recurring:
        return vacation.start_date <= on_date <= vacation.end_date

    # Recurring: compare month/day only, allowing ranges that wrap the new year (Dec 25 - Jan 3).
    start_md = _month_day(vacation.start_date)
    end_md = _month_day(vacation.end_date)
    target_md = _month_day(on_date)
    if start_md <= end_md:
        return start_md <= target_md <= end_md
    return target_md >= start_md or target_md <= end_md


def is_vacation_date(on_date: date, vacations: Iterable[Vacation]) -> bool:
    return any(vacation_covers(v, on_date) for v in vacations)


def load_branch_vacations(db: Session, branch_id: uuid.UUID | None) -> list[Vacation]:
    if branch_id is None:
        return []
    return db.execute(select(Vacation).where(Vacation.branch_id == branch_id)).scalars().all()


def find_covering_vacation(db: Session, branch_id: uuid.UUID | None, on_date: date) -> Vacation | None:
    for vacation in load_branch_vacations(db, branch_id):
        if vacation_covers(vacation, on_date):
            return vacation
    return None
