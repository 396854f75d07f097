from __future__ import annotations

import uuid
import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, model_validator

from services.conflict_types import ConflictType, SessionStatus


class ClassSessionBase(BaseModel):
    teacher_id: uuid.UUID | None = None
    student_id: uuid.UUID | None = None
    subject_id: uuid.UUID | None = None
    class_type_id: uuid.UUID | None = None
    booth_id: uuid.UUID | None = None
    branch_id: uuid.UUID | None = None
    notes: str | None = None


class ClassSessionCreate(ClassSessionBase):
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_time_order(self) -> "ClassSessionCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ClassSessionUpdate(BaseModel):
    teacher_id: uuid.UUID | None = None
    student_id: uuid.UUID | None = None
    subject_id: uuid.UUID | None = None
    class_type_id: uuid.UUID | None = None
    booth_id: uuid.UUID | None = None
    branch_id: uuid.UUID | None = None
    notes: str | None = None
    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    duration: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _check_time_order(self) -> "ClassSessionUpdate":
        # Placement fields may be omitted but never cleared.
        cleared = [f for f in ("date", "start_time", "end_time") if f in self.model_fields_set and getattr(self, f) is None]
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        if self.start_time is not None and self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ClassSessionIds(BaseModel):
    class_ids: list[uuid.UUID] = Field(min_length=1)
    cancelled_by_id: uuid.UUID | None = None


class ClassSessionOut(ClassSessionBase):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    series_id: uuid.UUID | None = None
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    duration: int | None = None
    status: SessionStatus
    is_cancelled: bool
    cancelled_at: dt.datetime | None = None
    cancelled_by_id: uuid.UUID | None = None


class ConflictReasonOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: ConflictType
    conflicting_session_id: uuid.UUID | None = None


class SessionConflictsOut(BaseModel):
    class_id: uuid.UUID
    stored_status: SessionStatus
    status: SessionStatus
    reasons: list[ConflictReasonOut]


class SessionStatusOut(BaseModel):
    class_id: uuid.UUID
    status: SessionStatus


class ConfirmFailureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    class_id: uuid.UUID
    reason: str


class ConfirmResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    updated: list[uuid.UUID]
    failed: list[ConfirmFailureOut]
