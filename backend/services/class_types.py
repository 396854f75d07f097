from __future__ import annotations

import logging
import uuid

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.class_type import ClassType


logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


def has_ancestor_named(
    db: Session,
    class_type_id: uuid.UUID | None,
    name: str,
    *,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> bool:
    """Whether ``class_type_id`` or one of its ancestors is called ``name``.

    The walk stops after ``max_depth`` hops, on a missing row, or on a cycle.
    """

    if class_type_id is None or not name:
        return False

    seen: set[uuid.UUID] = set()
    current_id: uuid.UUID | None = class_type_id
    try:
        for _ in range(max_depth):
            if current_id is None or current_id in seen:
                return False
            seen.add(current_id)
            class_type = db.get(ClassType, current_id)
            if class_type is None:
                return False
            if class_type.name == name:
                return True
            current_id = class_type.parent_id
    except SQLAlchemyError:
        logger.warning("Class type lookup failed for %s; treating as not excluded", class_type_id, exc_info=True)
        return False
    return False
