from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, Text, Time, Uuid
from sqlalchemy.sql import func

from models.base import Base


AVAILABILITY_TYPES = ("REGULAR", "EXCEPTION", "ABSENCE")
AVAILABILITY_STATUSES = ("PENDING", "APPROVED", "REJECTED")


class UserAvailability(Base):
    """A time window a person can (REGULAR/EXCEPTION) or cannot (ABSENCE) attend.

    REGULAR rows repeat weekly on ``day_of_week`` (0 = Sunday); EXCEPTION and
    ABSENCE rows apply to a single ``date``.
    """

    __tablename__ = "user_availability"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    type = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="PENDING")

    day_of_week = Column(Integer, nullable=True)
    date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    full_day = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("type in ('REGULAR', 'EXCEPTION', 'ABSENCE')", name="ck_user_availability_type"),
        CheckConstraint("status in ('PENDING', 'APPROVED', 'REJECTED')", name="ck_user_availability_status"),
        CheckConstraint(
            "day_of_week is null or (day_of_week >= 0 and day_of_week <= 6)",
            name="ck_user_availability_day",
        ),
        CheckConstraint(
            "full_day or (start_time is not null and end_time is not null and end_time > start_time)",
            name="ck_user_availability_window",
        ),
    )
