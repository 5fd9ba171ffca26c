from __future__ import annotations

import logging
import os
from typing import List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..accounts import services as account_services
from ..lifecycle import services as lifecycle_services
from ..workflow import TransitionError

from . import automation, models, schemas, triggers
from .scoring import METRICS, Rating, improvement_areas, score_breakdown

logger = logging.getLogger(__name__)

LOW_PERFORMER_THRESHOLD = int(os.getenv("LOW_PERFORMER_THRESHOLD", "70"))


def _category_for(score: int) -> str:
    if score >= 70:
        return "positive"
    if score >= 50:
        return "neutral"
    return "negative"


# ---------------------------------------------------------------------------
# SUBMISSION
# ---------------------------------------------------------------------------


def preview(payload: schemas.KPIPercentages) -> dict:
    """Score a set of percentages without persisting anything."""
    percentages = payload.model_dump(include=set(METRICS))
    breakdown = score_breakdown(percentages)
    tags = triggers.evaluate_triggers(percentages, breakdown.overall_score)
    return {
        "scores": breakdown.scores,
        "overall_score": breakdown.overall_score,
        "rating": breakdown.rating,
        "triggered_actions": [tag.value for tag in tags],
        "improvement_areas": improvement_areas(breakdown.scores),
    }


def _find_for_period(db: Session, user_id: str, period: str) -> Optional[models.KPIRecord]:
    return (
        db.query(models.KPIRecord)
        .filter(models.KPIRecord.user_id == user_id, models.KPIRecord.period == period)
        .first()
    )


def submit_kpi(
    db: Session,
    payload: schemas.KPISubmit,
    submitted_by: Optional[str] = None,
) -> models.KPIRecord:
    """
    Score and persist one KPI submission, then run automation on it.

    404 for an unknown user, 409 for a second submission in the same
    period. Automation problems never fail the submission; they show up in
    ``automation_status`` and ``automation_error``.
    """
    user = account_services.get_user_or_404(db, payload.user_id)
    if _find_for_period(db, user.id, payload.period):
        raise HTTPException(
            status_code=409,
            detail=f"KPI already submitted for period {payload.period}",
        )

    percentages = payload.model_dump(include=set(METRICS))
    breakdown = score_breakdown(percentages)

    record = models.KPIRecord(
        user_id=user.id,
        period=payload.period,
        overall_score=breakdown.overall_score,
        rating=breakdown.rating,
        triggered_actions=[],
        automation_status=models.AutomationStatus.PENDING,
        automation_attempts=0,
        submitted_by=submitted_by,
        comments=payload.comments,
        is_active=True,
    )
    for name in METRICS:
        setattr(record, f"{name}_percentage", percentages[name])
        setattr(record, f"{name}_score", breakdown.scores[name])

    try:
        with db.begin_nested():
            db.add(record)
            db.flush()
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail=f"KPI already submitted for period {payload.period}",
        )

    account_services.apply_kpi_standing(db, user, score=record.overall_score)
    lifecycle_services.log_event(
        db,
        user_id=user.id,
        event_type="kpi",
        title=f"KPI Score Recorded: {record.period}",
        description=f"Overall score {record.overall_score}% ({record.rating.value})",
        category=_category_for(record.overall_score),
        entity_type="kpi_record",
        entity_id=record.id,
        metadata={"overall_score": record.overall_score, "rating": record.rating.value},
    )
    logger.info(
        "KPI submitted",
        extra={
            "kpi_record_id": record.id,
            "user_id": user.id,
            "period": record.period,
            "overall_score": record.overall_score,
        },
    )

    automation.run_automation(db, record)
    return record


def reprocess(db: Session, kpi_record_id: str) -> Tuple[models.KPIRecord, automation.AutomationResult]:
    record = get_record_or_404(db, kpi_record_id)
    try:
        result = automation.run_automation(db, record)
    except TransitionError as exc:
        raise HTTPException(status_code=409, detail=exc.detail)
    return record, result


# ---------------------------------------------------------------------------
# READ SIDE
# ---------------------------------------------------------------------------


def get_record_or_404(db: Session, kpi_record_id: str) -> models.KPIRecord:
    record = db.query(models.KPIRecord).filter(models.KPIRecord.id == kpi_record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail="KPI record not found")
    return record


def list_for_user(db: Session, user_id: str, *, include_inactive: bool = False) -> List[models.KPIRecord]:
    qs = db.query(models.KPIRecord).filter(models.KPIRecord.user_id == user_id)
    if not include_inactive:
        qs = qs.filter(models.KPIRecord.is_active.is_(True))
    return qs.order_by(models.KPIRecord.period.desc()).all()


def list_pending_automation(
    db: Session,
    *,
    include_failed: bool = True,
    limit: int = 100,
) -> List[models.KPIRecord]:
    statuses = [models.AutomationStatus.PENDING]
    if include_failed:
        statuses.append(models.AutomationStatus.FAILED)
    return (
        db.query(models.KPIRecord)
        .filter(
            models.KPIRecord.automation_status.in_(statuses),
            models.KPIRecord.is_active.is_(True),
        )
        .order_by(models.KPIRecord.created_at.asc())
        .limit(limit)
        .all()
    )


def list_low_performers(
    db: Session,
    *,
    period: Optional[str] = None,
    threshold: Optional[int] = None,
) -> List[models.KPIRecord]:
    threshold = LOW_PERFORMER_THRESHOLD if threshold is None else threshold
    qs = db.query(models.KPIRecord).filter(
        models.KPIRecord.overall_score < threshold,
        models.KPIRecord.is_active.is_(True),
    )
    if period:
        qs = qs.filter(models.KPIRecord.period == period)
    return qs.order_by(models.KPIRecord.overall_score.asc()).all()


def trigger_summary(record: models.KPIRecord) -> dict:
    tags = record.triggered_actions or []
    return {
        "kpi_record_id": record.id,
        "overall_score": record.overall_score,
        "rating": record.rating,
        "triggered_actions": list(tags),
        "training_tags": [tag.value for tag in triggers.training_tags(tags)],
        "audit_tags": [tag.value for tag in triggers.audit_tags(tags)],
        "notification_templates": [t.value for t in triggers.notification_templates(tags)],
    }


def kpi_stats(db: Session, *, period: Optional[str] = None) -> dict:
    base = db.query(models.KPIRecord).filter(models.KPIRecord.is_active.is_(True))
    if period:
        base = base.filter(models.KPIRecord.period == period)

    by_rating = {rating.value: 0 for rating in Rating}
    for rating, count in (
        base.with_entities(models.KPIRecord.rating, func.count(models.KPIRecord.id))
        .group_by(models.KPIRecord.rating)
        .all()
    ):
        by_rating[rating.value] = count

    by_status = {
        status.value: count
        for status, count in (
            base.with_entities(models.KPIRecord.automation_status, func.count(models.KPIRecord.id))
            .group_by(models.KPIRecord.automation_status)
            .all()
        )
    }
    average = base.with_entities(func.avg(models.KPIRecord.overall_score)).scalar()
    low = base.filter(models.KPIRecord.overall_score < LOW_PERFORMER_THRESHOLD).count()

    return {
        "total": sum(by_rating.values()),
        "average_score": round(float(average), 2) if average is not None else None,
        "by_rating": by_rating,
        "by_automation_status": by_status,
        "low_performers": low,
    }


def deactivate(db: Session, kpi_record_id: str) -> models.KPIRecord:
    record = get_record_or_404(db, kpi_record_id)
    record.is_active = False
    db.add(record)
    db.flush()
    logger.info("KPI record deactivated", extra={"kpi_record_id": record.id})
    return record
