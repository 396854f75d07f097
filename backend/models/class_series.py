from __future__ import annotations

import uuid

from sqlalchemy import CheckConstraint, Column, Date, DateTime, Integer, Text, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base, PortableJSON


class ClassSeries(Base):
    __tablename__ = "class_series"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    teacher_id = Column(Uuid(as_uuid=True), nullable=True)
    student_id = Column(Uuid(as_uuid=True), nullable=True)
    subject_id = Column(Uuid(as_uuid=True), nullable=True)
    class_type_id = Column(Uuid(as_uuid=True), nullable=True)
    booth_id = Column(Uuid(as_uuid=True), nullable=True)
    branch_id = Column(Uuid(as_uuid=True), nullable=True, index=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    # 0 = Sunday ... 6 = Saturday
    days_of_week = Column(PortableJSON, nullable=False, default=list)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    duration = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)

    # Partial SchedulingPolicyOverride payload, applied on top of the branch policy.
    conflict_policy = Column(PortableJSON, nullable=True)
    last_generated_through = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_class_series_time_order"),
        CheckConstraint("end_date is null or end_date >= start_date", name="ck_class_series_date_order"),
    )
