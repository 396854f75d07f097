from __future__ import annotations

import uuid

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Text, Uuid
from sqlalchemy.sql import func

from models.base import Base


class Vacation(Base):
    __tablename__ = "vacations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    name = Column(Text, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    # Recurring vacations repeat every year on the same month/day range.
    is_recurring = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("is_recurring or end_date >= start_date", name="ck_vacations_date_order"),
    )
