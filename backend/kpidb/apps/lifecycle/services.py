from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def create_event(db: Session, *, data: schemas.LifecycleEventCreate) -> models.LifecycleEvent:
    event = models.LifecycleEvent(
        user_id=data.user_id,
        event_type=data.event_type,
        title=data.title,
        description=data.description,
        category=data.category,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        metadata_json=data.metadata,
    )
    db.add(event)
    db.flush()
    return event


def log_event(
    db: Session,
    *,
    user_id: Optional[str],
    event_type: str,
    title: str,
    description: Optional[str] = None,
    category: str = "system",
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    metadata: Optional[dict] = None,
    critical: bool = False,
) -> Optional[models.LifecycleEvent]:
    """
    Best-effort lifecycle logger.
    - For critical events (automation transitions), raise on failure.
    - Otherwise log a warning and carry on; the savepoint keeps the
      caller's transaction usable.
    """
    try:
        with db.begin_nested():
            return create_event(
                db,
                data=schemas.LifecycleEventCreate(
                    user_id=user_id,
                    event_type=event_type,
                    title=title,
                    description=description,
                    category=category,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    metadata=metadata,
                ),
            )
    except Exception:
        logger.warning(
            "Failed to log lifecycle event",
            extra={
                "user_id": user_id,
                "event_type": event_type,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "critical": critical,
            },
        )
        if critical:
            raise
        return None


def list_events_for_user(
    db: Session,
    *,
    user_id: str,
    category: Optional[str] = None,
    limit: int = 100,
) -> List[models.LifecycleEvent]:
    qs = db.query(models.LifecycleEvent).filter(models.LifecycleEvent.user_id == user_id)
    if category:
        qs = qs.filter(models.LifecycleEvent.category == category)
    return qs.order_by(models.LifecycleEvent.occurred_at.desc()).limit(limit).all()


def list_events_for_entity(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
) -> List[models.LifecycleEvent]:
    return (
        db.query(models.LifecycleEvent)
        .filter(
            models.LifecycleEvent.entity_type == entity_type,
            models.LifecycleEvent.entity_id == entity_id,
        )
        .order_by(models.LifecycleEvent.occurred_at.asc())
        .all()
    )
