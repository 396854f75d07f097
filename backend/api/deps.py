from __future__ import annotations

from fastapi import Depends
from sqlalchemy.orm import Session

from core.database import get_db
from services.availability import AvailabilityOracle, DbAvailabilityOracle


def get_availability_oracle(db: Session = Depends(get_db)) -> AvailabilityOracle:
    """Availability source used by classification; override in tests or alternate deployments."""

    return DbAvailabilityOracle(db)
