from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

from core.config import BACKEND_DIR


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_DATEFMT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE_NAME = "scheduling.log"

# Scheduling internals that get chatty at DEBUG.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "httpx")
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def resolve_log_level(environment: str, override: str | None = None) -> int:
    if override:
        level = logging.getLevelName(override.strip().upper())
        if isinstance(level, int):
            return level
    env = (environment or "development").lower().strip()
    return logging.INFO if env == "production" else logging.DEBUG


def _file_handler(log_dir: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(*, environment: str, level: str | None = None, log_dir: str | Path | None = None) -> None:
    """Configure process-wide logging once.

    Development logs to the console at DEBUG; production logs at INFO to the
    console and to a rotating ``scheduling.log``. ``level`` overrides either.
    Later calls are ignored while the root logger already has handlers.
    """

    root = logging.getLogger()
    if root.handlers:
        return

    resolved = resolve_log_level(environment, level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(resolved)
    console.setFormatter(formatter)
    handlers: list[logging.Handler] = [console]

    if (environment or "").lower().strip() == "production":
        target = Path(log_dir) if log_dir else Path(BACKEND_DIR) / "logs"
        handlers.append(_file_handler(target, resolved, formatter))

    logging.basicConfig(level=resolved, handlers=handlers)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    for name in _SERVER_LOGGERS:
        logging.getLogger(name).setLevel(resolved)
