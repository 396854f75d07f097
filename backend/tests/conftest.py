from __future__ import annotations

import os

# Settings() requires a URL at import time; tests build their own engine below.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import uuid
from datetime import date, time

import pytest
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from models.base import Base
from models.class_session import ClassSession
from models.student import Student
from models.teacher import Teacher
from services.availability import AvailabilityConflictKind, SharedAvailability, UserAvailabilityDetails


AVAILABLE = UserAvailabilityDetails(available=True)


def side(kind: AvailabilityConflictKind | None) -> UserAvailabilityDetails:
    if kind is None:
        return AVAILABLE
    return UserAvailabilityDetails(available=False, conflict_type=kind)


def shared(
    teacher: AvailabilityConflictKind | None = None,
    student: AvailabilityConflictKind | None = None,
    *,
    available: bool | None = None,
) -> SharedAvailability:
    if available is None:
        available = teacher is None and student is None
    return SharedAvailability(user1=side(teacher), user2=side(student), available=available)


class ScriptedOracle:
    """Availability oracle returning a fixed answer (or raising) and recording its calls."""

    def __init__(self, result: SharedAvailability | None = None, error: Exception | None = None) -> None:
        self.result = result or shared()
        self.error = error
        self.calls: list[dict] = []

    def get_shared_availability(self, user1_id, user2_id, on_date, start_time, end_time, *, skip_vacation_check=False):
        self.calls.append(
            {
                "user1_id": user1_id,
                "user2_id": user2_id,
                "date": on_date,
                "start_time": start_time,
                "end_time": end_time,
                "skip_vacation_check": skip_vacation_check,
            }
        )
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's implicit transactions break SAVEPOINT; let SQLAlchemy emit BEGIN itself.
    @event.listens_for(engine, "connect")
    def _no_implicit_transactions(dbapi_connection, _record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def update_statements(engine):
    """Collect UPDATE statements issued against class_sessions."""

    seen: list[str] = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(_conn, _cursor, statement, _params, _context, _executemany):
        if statement.lstrip().upper().startswith("UPDATE CLASS_SESSIONS"):
            seen.append(statement)

    yield seen
    event.remove(engine, "before_cursor_execute", _record)


@pytest.fixture
def sql_log(engine):
    """Every statement sent to the database, savepoint commands included."""

    seen: list[str] = []

    @event.listens_for(engine, "before_cursor_execute")
    def _record(_conn, _cursor, statement, _params, _context, _executemany):
        seen.append(statement.strip().upper())

    yield seen
    event.remove(engine, "before_cursor_execute", _record)


class BrokenQueryOracle:
    """Oracle whose lookup fails inside the database, like a statement timeout would."""

    def __init__(self, db) -> None:
        self.db = db

    def get_shared_availability(self, user1_id, user2_id, on_date, start_time, end_time, *, skip_vacation_check=False):
        self.db.execute(text("SELECT no_such_column FROM user_availability"))
        raise AssertionError("query above should have failed")


@pytest.fixture
def make_session(db):
    def _make(
        *,
        on_date: date = date(2025, 1, 6),
        start: time = time(9, 0),
        end: time = time(10, 0),
        teacher_id: uuid.UUID | None = None,
        student_id: uuid.UUID | None = None,
        booth_id: uuid.UUID | None = None,
        branch_id: uuid.UUID | None = None,
        status: str = "CONFIRMED",
        is_cancelled: bool = False,
    ) -> ClassSession:
        session = ClassSession(
            date=on_date,
            start_time=start,
            end_time=end,
            teacher_id=teacher_id,
            student_id=student_id,
            booth_id=booth_id,
            branch_id=branch_id,
            status=status,
            is_cancelled=is_cancelled,
        )
        db.add(session)
        db.commit()
        db.refresh(session)
        return session

    return _make


@pytest.fixture
def make_pair(db):
    """Teacher and student rows linked to person (user) ids."""

    def _make() -> tuple[Teacher, Student]:
        teacher = Teacher(full_name="Teacher", user_id=uuid.uuid4())
        student = Student(full_name="Student", user_id=uuid.uuid4())
        db.add_all([teacher, student])
        db.commit()
        db.refresh(teacher)
        db.refresh(student)
        return teacher, student

    return _make
