from __future__ import annotations

import logging
import time
from typing import Iterable, Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from core.config import settings


logger = logging.getLogger(__name__)


class DatabaseUnavailableError(RuntimeError):
    """The database could not be reached after retrying (DNS, refused connection, timeout)."""


# Backoff between attempts to get a live connection for a request.
_RETRY_DELAYS_SECONDS: tuple[float, ...] = (0.2, 0.5, 1.0)

# Lower-cased message fragments of connectivity failures worth retrying.
_TRANSIENT_MARKERS: tuple[str, ...] = (
    "getaddrinfo failed",
    "could not translate host name",
    "name or service not known",
    "connection refused",
    "actively refused",
    "connection reset",
    "server closed the connection unexpectedly",
    "timeout",
    "timed out",
    "database is locked",
)

_POSTGRES_PREFIXES: tuple[str, ...] = ("postgresql+psycopg://", "postgresql://", "postgres://")


def _exception_chain_messages(exc: BaseException) -> Iterable[str]:
    seen: set[int] = set()
    cur: BaseException | None = exc
    while cur is not None and id(cur) not in seen:
        seen.add(id(cur))
        if str(cur):
            yield str(cur).lower()
        cur = cur.__cause__ or cur.__context__


def is_transient_db_connectivity_error(exc: BaseException) -> bool:
    """Whether ``exc`` (or anything it was raised from) looks like a connectivity blip.

    Constraint, validation and SQL errors never qualify.
    """

    return any(marker in message for message in _exception_chain_messages(exc) for marker in _TRANSIENT_MARKERS)


def normalize_database_url(url: str) -> str:
    """Point every Postgres URL spelling at the psycopg2 dialect; leave other backends alone."""

    url = url.strip()
    for prefix in _POSTGRES_PREFIXES:
        if url.startswith(prefix):
            return "postgresql+psycopg2://" + url.removeprefix(prefix)
    return url


def get_engine(database_url: str | None = None) -> Engine:
    url = normalize_database_url(database_url or settings.database_url)

    if make_url(url).get_backend_name() == "sqlite":
        # Request handlers run on FastAPI's threadpool, not the thread that opened the connection.
        connect_args: dict[str, object] = {"check_same_thread": False}
    else:
        connect_args = {"connect_timeout": 3}

    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


ENGINE = get_engine()
SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False)


def _open_checked_session() -> Session:
    """Open a session whose connection answered ``SELECT 1``, retrying transient failures."""

    last_exc: BaseException | None = None
    delays: Iterator[float] = iter(_RETRY_DELAYS_SECONDS)
    while True:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            return db
        except OperationalError as exc:
            db.close()
            last_exc = exc
            delay = next(delays, None) if is_transient_db_connectivity_error(exc) else None
            if delay is None:
                break
            logger.info("Database ping failed; retrying in %.1fs", delay)
            time.sleep(delay)

    raise DatabaseUnavailableError("Database temporarily unavailable") from last_exc


def get_db():
    db = _open_checked_session()
    # Errors raised by the endpoint itself pass through untouched (404/409/422).
    try:
        yield db
    finally:
        db.close()
