from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from core.database import get_db
from schemas.scheduling_config import SchedulingPolicyOut, SchedulingPolicyOverride
from services.scheduling_config import resolve_effective_policy, upsert_branch_policy


router = APIRouter()


@router.get("/effective", response_model=SchedulingPolicyOut)
def get_effective_policy(
    branch_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
) -> SchedulingPolicyOut:
    policy = resolve_effective_policy(db, branch_id)
    return SchedulingPolicyOut(branch_id=str(branch_id) if branch_id else None, policy=policy)


@router.patch("/branches/{branch_id}", response_model=SchedulingPolicyOut)
def patch_branch_policy(
    branch_id: uuid.UUID,
    payload: SchedulingPolicyOverride,
    db: Session = Depends(get_db),
) -> SchedulingPolicyOut:
    upsert_branch_policy(db, branch_id, payload)
    return SchedulingPolicyOut(branch_id=str(branch_id), policy=resolve_effective_policy(db, branch_id))
