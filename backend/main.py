from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SAOperationalError

from api.router import api_router
from core.config import settings
from core.database import DatabaseUnavailableError, ENGINE, is_transient_db_connectivity_error
from core.logging import setup_logging
from services.class_sessions import SessionNotFoundError, VacationConflictError
from services.series_advancer import SeriesNotFoundError


logger = logging.getLogger(__name__)

_LOCAL_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]
_LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"code": code, "message": message, **extra})


def _database_unavailable() -> JSONResponse:
    return _error(503, "DATABASE_UNAVAILABLE", "Database temporarily unavailable. Please retry.")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DatabaseUnavailableError)
    def _on_db_unavailable(_request: Request, exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=exc)
        return _database_unavailable()

    @app.exception_handler(SAOperationalError)
    def _on_operational_error(_request: Request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Transient database error (503)", exc_info=exc)
            return _database_unavailable()
        logger.error("Database operation failed (500)", exc_info=exc)
        return _error(500, "DATABASE_ERROR", "Database operation failed.")

    # Fallbacks for service errors that escape a route without being mapped.
    @app.exception_handler(SessionNotFoundError)
    def _on_session_not_found(_request: Request, exc: SessionNotFoundError):
        return _error(404, "CLASS_SESSION_NOT_FOUND", str(exc))

    @app.exception_handler(SeriesNotFoundError)
    def _on_series_not_found(_request: Request, exc: SeriesNotFoundError):
        return _error(404, "CLASS_SERIES_NOT_FOUND", str(exc))

    @app.exception_handler(VacationConflictError)
    def _on_vacation_conflict(_request: Request, exc: VacationConflictError):
        return _error(409, "VACATION_CONFLICT", str(exc), date=exc.on_date.isoformat())


def configure_cors(app: FastAPI, *, is_production: bool) -> None:
    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        allow_origins.extend(_LOCAL_ORIGINS)
        allow_origin_regex = _LOCAL_ORIGIN_REGEX

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment, level=settings.log_level, log_dir=settings.log_dir)
    is_production = settings.environment == "production"

    app = FastAPI(
        title="Tutoring Scheduler API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )
    register_exception_handlers(app)
    configure_cors(app, is_production=is_production)

    @app.get("/health")
    def health() -> dict:
        # Reports the database as "down" rather than failing the probe.
        database = "ok"
        try:
            with ENGINE.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            logger.warning("Health check could not reach the database", exc_info=True)
            database = "down"
        return {"app": "ok", "database": database, "environment": settings.environment}

    app.include_router(api_router, prefix="/api")
    logger.info("Scheduler API ready (environment=%s)", settings.environment)
    return app


app = create_app()
