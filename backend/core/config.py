from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic.aliases import AliasChoices
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=BACKEND_DIR / ".env", env_file_encoding="utf-8", extra="ignore")

    database_url: str

    # Runtime
    environment: str = Field(default="development", validation_alias=AliasChoices("environment", "ENVIRONMENT"))
    frontend_origin: str = Field(
        default="http://localhost:5173",
        validation_alias=AliasChoices("frontend_origin", "FRONTEND_ORIGIN"),
    )
    log_level: str | None = Field(default=None, validation_alias=AliasChoices("log_level", "LOG_LEVEL"))
    log_dir: str | None = Field(default=None, validation_alias=AliasChoices("log_dir", "LOG_DIR"))

    # Series advancement
    # Rolling lead window used when a caller does not pass lead_days explicitly.
    series_default_lead_days: int = Field(
        default=30,
        ge=1,
        validation_alias=AliasChoices("series_default_lead_days", "SERIES_DEFAULT_LEAD_DAYS"),
    )
    # Series whose class-type chain contains this category are never advanced.
    series_excluded_class_type_name: str = Field(
        default="特別授業",
        validation_alias=AliasChoices(
            "series_excluded_class_type_name",
            "SERIES_EXCLUDED_CLASS_TYPE_NAME",
        ),
    )
    class_type_max_depth: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("class_type_max_depth", "CLASS_TYPE_MAX_DEPTH"),
    )

    @field_validator("frontend_origin")
    @classmethod
    def _normalize_frontend_origin(cls, v: str) -> str:
        # Starlette CORS expects the Origin to match exactly (no trailing slash).
        return v.strip().rstrip("/")

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @field_validator("series_excluded_class_type_name")
    @classmethod
    def _normalize_excluded_class_type_name(cls, v: str) -> str:
        return (v or "").strip()


settings = Settings()
