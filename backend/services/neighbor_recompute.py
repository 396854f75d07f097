from __future__ import annotations

import logging
import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from models.class_session import ClassSession
from services.availability import AvailabilityOracle
from services.placement import SessionPlacement, build_resource_intersection_filter, build_time_overlap_filter
from services.status_engine import recompute_and_persist_status


logger = logging.getLogger(__name__)


def find_neighbor_ids(db: Session, placement: SessionPlacement) -> set[uuid.UUID]:
    """Ids of other live sessions sharing a resource and an overlapping window with ``placement``."""

    if not placement.has_resources:
        return set()

    q = (
        select(ClassSession.id)
        .where(ClassSession.is_cancelled.is_(False))
        .where(ClassSession.date == placement.date)
        .where(build_time_overlap_filter(placement.start_time, placement.end_time))
        .where(
            build_resource_intersection_filter(
                placement.teacher_id,
                placement.student_id,
                placement.booth_id,
            )
        )
    )
    if placement.session_id is not None:
        q = q.where(ClassSession.id != placement.session_id)
    return set(db.execute(q).scalars().all())


def _recompute_best_effort(db: Session, session_id: uuid.UUID, *, oracle: AvailabilityOracle | None) -> None:
    try:
        status = recompute_and_persist_status(db, session_id, oracle=oracle)
    except Exception:
        logger.warning("Neighbor recompute failed for session %s; continuing", session_id, exc_info=True)
        db.rollback()
        return
    if status is None:
        logger.info("Neighbor session %s vanished before recompute; skipping", session_id)


def recompute_neighbors(
    db: Session,
    old_placement: SessionPlacement | None,
    new_placement: SessionPlacement | None,
    *,
    oracle: AvailabilityOracle | None = None,
) -> set[uuid.UUID]:
    """Recompute every session that the move from ``old_placement`` to ``new_placement`` may affect.

    Either side may be None (creation: no old placement; cancellation: no new
    one). Each neighbour is recomputed independently; one failure does not
    stop the others. Returns the neighbour ids that were visited.
    """

    neighbor_ids: set[uuid.UUID] = set()
    for placement in (old_placement, new_placement):
        if placement is not None:
            neighbor_ids |= find_neighbor_ids(db, placement)

    for session_id in neighbor_ids:
        _recompute_best_effort(db, session_id, oracle=oracle)

    if neighbor_ids:
        logger.debug("Recomputed %d neighbor session(s)", len(neighbor_ids))
    return neighbor_ids


def recompute_neighbors_for_cancelled(
    db: Session,
    placements: Iterable[SessionPlacement],
    *,
    oracle: AvailabilityOracle | None = None,
) -> None:
    """Treat each placement as removed from the grid."""

    for placement in placements:
        try:
            recompute_neighbors(db, placement, None, oracle=oracle)
        except Exception:
            logger.warning("Neighbor recompute failed for cancelled session %s", placement.session_id, exc_info=True)
            db.rollback()


def recompute_neighbors_for_reactivated(
    db: Session,
    placements: Iterable[SessionPlacement],
    *,
    oracle: AvailabilityOracle | None = None,
) -> None:
    """Treat each placement as (re)added, then recompute the reactivated session itself."""

    for placement in placements:
        try:
            recompute_neighbors(db, None, placement, oracle=oracle)
        except Exception:
            logger.warning("Neighbor recompute failed for reactivated session %s", placement.session_id, exc_info=True)
            db.rollback()
        if placement.session_id is not None:
            _recompute_best_effort(db, placement.session_id, oracle=oracle)
