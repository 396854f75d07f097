from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.deps import get_availability_oracle
from core.database import get_db
from schemas.class_series import AdvanceBatchOut, AdvanceResultOut
from services.availability import AvailabilityOracle
from services.series_advancer import SeriesNotFoundError, advance_due_series, advance_series


router = APIRouter()


@router.post("/advance/cron", response_model=AdvanceBatchOut)
def advance_all_series(
    lead_days: int | None = Query(default=None, ge=1),
    branch_id: uuid.UUID | None = Query(default=None),
    series_id: uuid.UUID | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> AdvanceBatchOut:
    batch = advance_due_series(
        db,
        lead_days=lead_days,
        branch_id=branch_id,
        series_id=series_id,
        limit=limit,
        oracle=oracle,
    )
    return AdvanceBatchOut(
        processed=batch.processed,
        up_to_date=batch.up_to_date,
        failed=batch.failed,
        created_confirmed=batch.created_confirmed,
        created_conflicted=batch.created_conflicted,
        skipped=batch.skipped,
        lead_days=lead_days,
        details=[AdvanceResultOut.model_validate(d) for d in batch.details],
    )


@router.post("/{series_id}/advance", response_model=AdvanceResultOut)
def advance_one_series(
    series_id: uuid.UUID,
    lead_days: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> AdvanceResultOut:
    try:
        result = advance_series(db, series_id, lead_days, oracle=oracle)
    except SeriesNotFoundError:
        raise HTTPException(status_code=404, detail="CLASS_SERIES_NOT_FOUND")
    return AdvanceResultOut.model_validate(result)
