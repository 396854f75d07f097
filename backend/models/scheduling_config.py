from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Uuid
from sqlalchemy.sql import func

from models.base import Base


class SchedulingConfig(Base):
    """Global scheduling policy (single row)."""

    __tablename__ = "scheduling_config"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    mark_teacher_conflict = Column(Boolean, nullable=False, default=True)
    mark_student_conflict = Column(Boolean, nullable=False, default=True)
    mark_booth_conflict = Column(Boolean, nullable=False, default=True)
    mark_teacher_unavailable = Column(Boolean, nullable=False, default=False)
    mark_student_unavailable = Column(Boolean, nullable=False, default=False)
    mark_teacher_wrong_time = Column(Boolean, nullable=False, default=False)
    mark_student_wrong_time = Column(Boolean, nullable=False, default=False)
    mark_no_shared_availability = Column(Boolean, nullable=False, default=False)
    allow_outside_availability_teacher = Column(Boolean, nullable=False, default=False)
    allow_outside_availability_student = Column(Boolean, nullable=False, default=False)
    generation_months = Column(Integer, nullable=False, default=1)

    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("generation_months >= 1", name="ck_scheduling_config_generation_months"),
    )


class BranchSchedulingConfig(Base):
    """Per-branch override; a NULL column means "inherit from the global config"."""

    __tablename__ = "branch_scheduling_config"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)

    mark_teacher_conflict = Column(Boolean, nullable=True)
    mark_student_conflict = Column(Boolean, nullable=True)
    mark_booth_conflict = Column(Boolean, nullable=True)
    mark_teacher_unavailable = Column(Boolean, nullable=True)
    mark_student_unavailable = Column(Boolean, nullable=True)
    mark_teacher_wrong_time = Column(Boolean, nullable=True)
    mark_student_wrong_time = Column(Boolean, nullable=True)
    mark_no_shared_availability = Column(Boolean, nullable=True)
    allow_outside_availability_teacher = Column(Boolean, nullable=True)
    allow_outside_availability_student = Column(Boolean, nullable=True)
    generation_months = Column(Integer, nullable=True)

    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(
            "generation_months is null or generation_months >= 1",
            name="ck_branch_scheduling_config_generation_months",
        ),
    )
