from __future__ import annotations

import datetime as dt
import uuid

from pydantic import BaseModel, ConfigDict


class AdvanceResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    series_id: uuid.UUID
    from_date: dt.date | None = None
    to_date: dt.date | None = None
    attempted: int
    created_confirmed: int
    created_conflicted: int
    skipped: int
    series_deleted: bool = False


class AdvanceBatchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    processed: int
    up_to_date: int
    failed: int
    created_confirmed: int
    created_conflicted: int
    skipped: int
    lead_days: int | None = None
    details: list[AdvanceResultOut]
