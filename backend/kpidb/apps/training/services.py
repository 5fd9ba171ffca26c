# backend/kpidb/apps/training/services.py

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Mapping, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...utils.identifiers import kpi_side_effect_key
from ..accounts import services as account_services
from ..kpi.fanout import FanOutResult, provision_once
from ..kpi.triggers import ActionTag, training_tags
from ..lifecycle import services as lifecycle_services
from ..notifications import service as notification_service
from ..workflow import apply_transition

from . import models, schemas

logger = logging.getLogger(__name__)

TRAINING_DUE_DAYS_HIGH = int(os.getenv("TRAINING_DUE_DAYS_HIGH", "7"))
TRAINING_DUE_DAYS_DEFAULT = int(os.getenv("TRAINING_DUE_DAYS_DEFAULT", "14"))

FACTORY = "training"

TAG_TRAINING_TYPES = {
    ActionTag.BASIC_TRAINING: models.TrainingType.BASIC,
    ActionTag.NEGATIVITY_TRAINING: models.TrainingType.NEGATIVITY_HANDLING,
    ActionTag.DOS_DONTS_TRAINING: models.TrainingType.DOS_DONTS,
    ActionTag.APP_USAGE_TRAINING: models.TrainingType.APP_USAGE,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TrainingPlan:
    training_type: models.TrainingType
    reason: str
    priority: str


def plan_for_tag(tag: ActionTag, *, overall_score: int, percentages: Mapping[str, float]) -> TrainingPlan:
    training_type = TAG_TRAINING_TYPES[tag]
    if tag == ActionTag.BASIC_TRAINING:
        return TrainingPlan(
            training_type,
            f"Overall KPI score {overall_score}% is below threshold",
            "high" if overall_score < 40 else "medium",
        )
    if tag == ActionTag.NEGATIVITY_TRAINING:
        return TrainingPlan(
            training_type,
            f"Major negativity {percentages['major_negativity']}% detected with low general "
            f"negativity {percentages['negativity']}%",
            "medium",
        )
    if tag == ActionTag.DOS_DONTS_TRAINING:
        return TrainingPlan(
            training_type,
            f"Quality concerns {percentages['quality']}% above threshold",
            "high",
        )
    return TrainingPlan(
        training_type,
        f"App usage {percentages['app_usage']}% below target",
        "medium",
    )


def due_date_for(start: datetime, priority: str) -> datetime:
    days = TRAINING_DUE_DAYS_HIGH if priority == "high" else TRAINING_DUE_DAYS_DEFAULT
    return start + timedelta(days=days)


# ---------------------------------------------------------------------------
# KPI FAN-OUT
# ---------------------------------------------------------------------------


def provision_for_kpi(db: Session, *, record, tags: Iterable[str]) -> FanOutResult:
    """
    Create one TrainingAssignment per training tag of ``record``.

    Due dates are measured from the record's creation time so a re-run
    produces the same dates. Existing assignments (same idempotency key)
    are reused.
    """
    result = FanOutResult()
    percentages = record.percentages()
    start = record.created_at or _utcnow()

    for tag in training_tags(tags):
        plan = plan_for_tag(tag, overall_score=record.overall_score, percentages=percentages)

        def build(plan: TrainingPlan = plan) -> models.TrainingAssignment:
            return models.TrainingAssignment(
                user_id=record.user_id,
                training_type=plan.training_type,
                assigned_by=models.AssignedBy.KPI_TRIGGER,
                assigned_at=start,
                due_date=due_date_for(start, plan.priority),
                status=models.TrainingStatus.ASSIGNED,
                reason=plan.reason,
                notes=plan.reason,
                kpi_record_id=record.id,
                is_active=True,
            )

        provision_once(
            db,
            result,
            model=models.TrainingAssignment,
            key=kpi_side_effect_key(record.id, FACTORY, tag.value),
            factory=FACTORY,
            tag=tag.value,
            build=build,
        )

    if result.created:
        lifecycle_services.log_event(
            db,
            user_id=record.user_id,
            event_type="training",
            title="Training Assignments Created",
            description=f"{len(result.created)} training(s) assigned based on KPI performance",
            category="neutral",
            entity_type="kpi_record",
            entity_id=record.id,
            metadata={"training_assignment_ids": list(result.created)},
        )
    return result


# ---------------------------------------------------------------------------
# LOOKUPS
# ---------------------------------------------------------------------------


def get_assignment_or_404(db: Session, assignment_id: str) -> models.TrainingAssignment:
    assignment = (
        db.query(models.TrainingAssignment)
        .filter(models.TrainingAssignment.id == assignment_id)
        .first()
    )
    if not assignment:
        raise HTTPException(status_code=404, detail="Training assignment not found")
    return assignment


def list_for_kpi(db: Session, kpi_record_id: str) -> List[models.TrainingAssignment]:
    return (
        db.query(models.TrainingAssignment)
        .filter(models.TrainingAssignment.kpi_record_id == kpi_record_id)
        .order_by(models.TrainingAssignment.created_at.asc())
        .all()
    )


def list_pending(db: Session, *, user_id: Optional[str] = None) -> List[models.TrainingAssignment]:
    qs = db.query(models.TrainingAssignment).filter(
        models.TrainingAssignment.status.in_(models.OPEN_STATUSES),
        models.TrainingAssignment.is_active.is_(True),
    )
    if user_id:
        qs = qs.filter(models.TrainingAssignment.user_id == user_id)
    return qs.order_by(models.TrainingAssignment.due_date.asc()).all()


def list_overdue(db: Session, *, now: Optional[datetime] = None) -> List[models.TrainingAssignment]:
    now = now or _utcnow()
    return (
        db.query(models.TrainingAssignment)
        .filter(
            models.TrainingAssignment.status.in_(models.OPEN_STATUSES),
            models.TrainingAssignment.is_active.is_(True),
            models.TrainingAssignment.due_date < now,
        )
        .order_by(models.TrainingAssignment.due_date.asc())
        .all()
    )


def training_stats(db: Session, *, now: Optional[datetime] = None) -> dict:
    base = db.query(models.TrainingAssignment).filter(models.TrainingAssignment.is_active.is_(True))

    by_status = {
        status.value: count
        for status, count in (
            base.with_entities(models.TrainingAssignment.status, func.count(models.TrainingAssignment.id))
            .group_by(models.TrainingAssignment.status)
            .all()
        )
    }
    by_type = {
        training_type.value: count
        for training_type, count in (
            base.with_entities(models.TrainingAssignment.training_type, func.count(models.TrainingAssignment.id))
            .group_by(models.TrainingAssignment.training_type)
            .all()
        )
    }
    average_score = (
        base.with_entities(func.avg(models.TrainingAssignment.score))
        .filter(models.TrainingAssignment.score.is_not(None))
        .scalar()
    )
    return {
        "total": sum(by_status.values()),
        "overdue": len(list_overdue(db, now=now)),
        "by_status": by_status,
        "by_type": by_type,
        "average_score": float(average_score) if average_score is not None else None,
    }


# ---------------------------------------------------------------------------
# EXTERNAL ACTIONS (trainers / coordinators)
# ---------------------------------------------------------------------------


def manual_assign(db: Session, data: schemas.TrainingAssignmentManualCreate) -> models.TrainingAssignment:
    account_services.get_user_or_404(db, data.user_id)

    assignment = models.TrainingAssignment(
        user_id=data.user_id,
        training_type=data.training_type,
        assigned_by=models.AssignedBy.MANUAL,
        assigned_by_user_id=data.assigned_by_user_id,
        due_date=data.due_date,
        status=models.TrainingStatus.ASSIGNED,
        reason=data.reason,
        notes=data.notes,
        kpi_record_id=None,
        is_active=True,
    )
    db.add(assignment)
    db.flush()

    lifecycle_services.log_event(
        db,
        user_id=assignment.user_id,
        event_type="training",
        title="Training Assigned",
        description=f"{assignment.training_type.value} training assigned manually",
        category="neutral",
        entity_type="training_assignment",
        entity_id=assignment.id,
    )
    return assignment


def mark_in_progress(db: Session, assignment_id: str) -> models.TrainingAssignment:
    assignment = get_assignment_or_404(db, assignment_id)
    apply_transition(
        db,
        entity_type="training_assignment",
        entity_id=assignment.id,
        from_state=assignment.status,
        to_state=models.TrainingStatus.IN_PROGRESS,
        user_id=assignment.user_id,
    )
    assignment.status = models.TrainingStatus.IN_PROGRESS
    assignment.started_at = _utcnow()
    db.add(assignment)
    db.flush()
    return assignment


def complete_training(
    db: Session,
    assignment_id: str,
    score: Optional[int] = None,
    notes: Optional[str] = None,
) -> models.TrainingAssignment:
    """
    Complete an assignment, overdue or not.

    404 when the assignment does not exist, 400 when it is already completed.
    """
    assignment = get_assignment_or_404(db, assignment_id)
    if assignment.status == models.TrainingStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Training assignment is already completed")

    was_overdue = assignment.is_overdue()
    apply_transition(
        db,
        entity_type="training_assignment",
        entity_id=assignment.id,
        from_state=assignment.status,
        to_state=models.TrainingStatus.COMPLETED,
        after_obj={"score": score, "overdue": was_overdue},
        user_id=assignment.user_id,
    )

    assignment.status = models.TrainingStatus.COMPLETED
    assignment.completion_date = _utcnow()
    assignment.score = score
    if notes:
        assignment.notes = notes
    db.add(assignment)
    db.flush()

    lifecycle_services.log_event(
        db,
        user_id=assignment.user_id,
        event_type="training",
        title="Training Completed",
        description=f"{assignment.training_type.value} training completed"
        + (f" with score {score}%" if score is not None else ""),
        category="positive",
        entity_type="training_assignment",
        entity_id=assignment.id,
    )
    notification_service.notify_training_completion(db, assignment)
    return assignment


def deactivate(db: Session, assignment_id: str) -> models.TrainingAssignment:
    assignment = get_assignment_or_404(db, assignment_id)
    assignment.is_active = False
    db.add(assignment)
    db.flush()
    logger.info("Training assignment deactivated", extra={"training_assignment_id": assignment.id})
    return assignment
