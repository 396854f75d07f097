from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.deps import get_availability_oracle
from core.database import get_db
from schemas.class_session import (
    ClassSessionCreate,
    ClassSessionIds,
    ClassSessionOut,
    ClassSessionUpdate,
    ConfirmResultOut,
    ConflictReasonOut,
    SessionConflictsOut,
    SessionStatusOut,
)
from services.availability import AvailabilityOracle
from services.class_sessions import (
    InvalidPlacementError,
    SessionNotFoundError,
    VacationConflictError,
    cancel_class_sessions,
    confirm_class_sessions,
    create_class_session,
    get_session_conflicts,
    reactivate_class_sessions,
    update_class_session,
)
from services.status_engine import recompute_and_persist_status


router = APIRouter()


def _vacation_conflict(exc: VacationConflictError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={
            "code": "VACATION_CONFLICT",
            "date": exc.on_date.isoformat(),
            "vacation_id": str(exc.vacation_id),
            "vacation_name": exc.vacation_name,
        },
    )


@router.post("/", response_model=ClassSessionOut)
def create_session(
    payload: ClassSessionCreate,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> ClassSessionOut:
    try:
        session, _reasons = create_class_session(db, payload, oracle=oracle)
    except VacationConflictError as exc:
        raise _vacation_conflict(exc)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CLASS_SESSION_ALREADY_EXISTS")
    return session


@router.patch("/{class_id}", response_model=ClassSessionOut)
def update_session(
    class_id: uuid.UUID,
    payload: ClassSessionUpdate,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> ClassSessionOut:
    try:
        return update_class_session(db, class_id, payload, oracle=oracle)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="CLASS_SESSION_NOT_FOUND")
    except InvalidPlacementError:
        raise HTTPException(status_code=400, detail="INVALID_TIME_RANGE")
    except VacationConflictError as exc:
        raise _vacation_conflict(exc)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="CONFLICT")


@router.post("/cancel", response_model=list[ClassSessionOut])
def cancel_sessions(
    payload: ClassSessionIds,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> list[ClassSessionOut]:
    try:
        return cancel_class_sessions(db, payload.class_ids, cancelled_by_id=payload.cancelled_by_id, oracle=oracle)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "CLASS_SESSION_NOT_FOUND", "ids": str(exc)})


@router.post("/reactivate", response_model=list[ClassSessionOut])
def reactivate_sessions(
    payload: ClassSessionIds,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> list[ClassSessionOut]:
    try:
        return reactivate_class_sessions(db, payload.class_ids, oracle=oracle)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail={"code": "CLASS_SESSION_NOT_FOUND", "ids": str(exc)})


@router.post("/confirm", response_model=ConfirmResultOut)
def confirm_sessions(payload: ClassSessionIds, db: Session = Depends(get_db)) -> ConfirmResultOut:
    # Partial success is normal here; refused ids come back in ``failed``.
    return ConfirmResultOut.model_validate(confirm_class_sessions(db, payload.class_ids))


@router.get("/{class_id}/conflicts", response_model=SessionConflictsOut)
def session_conflicts(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> SessionConflictsOut:
    try:
        report = get_session_conflicts(db, class_id, oracle=oracle)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="CLASS_SESSION_NOT_FOUND")
    return SessionConflictsOut(
        class_id=report.class_id,
        stored_status=report.stored_status,
        status=report.status,
        reasons=[ConflictReasonOut.model_validate(r) for r in report.reasons],
    )


@router.post("/{class_id}/recompute", response_model=SessionStatusOut)
def recompute_session_status(
    class_id: uuid.UUID,
    db: Session = Depends(get_db),
    oracle: AvailabilityOracle = Depends(get_availability_oracle),
) -> SessionStatusOut:
    status = recompute_and_persist_status(db, class_id, oracle=oracle)
    if status is None:
        raise HTTPException(status_code=404, detail="CLASS_SESSION_NOT_FOUND")
    return SessionStatusOut(class_id=class_id, status=status)
