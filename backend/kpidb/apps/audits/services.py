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
from ..kpi.triggers import ActionTag, audit_tags
from ..lifecycle import services as lifecycle_services
from ..notifications import service as notification_service
from ..workflow import apply_transition

from . import models, schemas

logger = logging.getLogger(__name__)

AUDIT_DAYS_HIGH = int(os.getenv("AUDIT_DAYS_HIGH", "3"))
AUDIT_DAYS_DEFAULT = int(os.getenv("AUDIT_DAYS_DEFAULT", "7"))
DUMMY_AUDIT_DAYS = int(os.getenv("DUMMY_AUDIT_DAYS", "1"))
UPCOMING_WINDOW_DAYS = 7

FACTORY = "audit"

TAG_AUDIT_TYPES = {
    ActionTag.AUDIT_CALL: models.AuditType.AUDIT_CALL,
    ActionTag.CROSS_CHECK_3_MONTHS: models.AuditType.CROSS_CHECK,
    ActionTag.DUMMY_AUDIT: models.AuditType.DUMMY_AUDIT,
    ActionTag.CROSS_VERIFY_INSUFF: models.AuditType.CROSS_VERIFY_INSUFF,
    ActionTag.RCA_COMPLAINTS: models.AuditType.RCA_COMPLAINTS,
}

AUDIT_METHODS = {
    models.AuditType.AUDIT_CALL: "Phone call audit with performance review",
    models.AuditType.CROSS_CHECK: "Cross-verification of last 3 months data",
    models.AuditType.DUMMY_AUDIT: "Dummy case audit to test performance",
    models.AuditType.CROSS_VERIFY_INSUFF: "Cross-verification of insufficient cases by another FE",
    models.AuditType.RCA_COMPLAINTS: "Root cause analysis of quality complaints",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def audit_method_for(audit_type: models.AuditType) -> str:
    return AUDIT_METHODS.get(audit_type, "Standard audit procedure")


@dataclass(frozen=True)
class AuditPlan:
    audit_type: models.AuditType
    scope: str
    priority: models.AuditPriority


def plan_for_tag(tag: ActionTag, *, overall_score: int, percentages: Mapping[str, float]) -> AuditPlan:
    audit_type = TAG_AUDIT_TYPES[tag]
    high = models.AuditPriority.HIGH
    medium = models.AuditPriority.MEDIUM

    if tag == ActionTag.AUDIT_CALL:
        scope = (
            f"Overall KPI score {overall_score}% below 70% threshold"
            if overall_score < 70
            else f"Audit call required for KPI score {overall_score}%"
        )
        return AuditPlan(audit_type, scope, high if overall_score < 50 else medium)
    if tag == ActionTag.CROSS_CHECK_3_MONTHS:
        return AuditPlan(
            audit_type,
            f"Cross-check last 3 months data required for score {overall_score}%",
            medium,
        )
    if tag == ActionTag.DUMMY_AUDIT:
        return AuditPlan(audit_type, f"Dummy audit case required for score {overall_score}%", high)
    if tag == ActionTag.CROSS_VERIFY_INSUFF:
        return AuditPlan(
            audit_type,
            f"Insufficiency rate {percentages['insufficiency']}% above 2% threshold",
            high,
        )
    return AuditPlan(
        audit_type,
        f"Quality complaints {percentages['quality']}% above 1% threshold",
        high,
    )


def scheduled_date_for(start: datetime, plan: AuditPlan) -> datetime:
    if plan.audit_type == models.AuditType.DUMMY_AUDIT:
        days = DUMMY_AUDIT_DAYS
    elif plan.priority in (models.AuditPriority.HIGH, models.AuditPriority.CRITICAL):
        days = AUDIT_DAYS_HIGH
    else:
        days = AUDIT_DAYS_DEFAULT
    return start + timedelta(days=days)


# ---------------------------------------------------------------------------
# KPI FAN-OUT
# ---------------------------------------------------------------------------


def provision_for_kpi(db: Session, *, record, tags: Iterable[str]) -> FanOutResult:
    """Create one AuditSchedule per audit tag of ``record``, reusing earlier runs."""
    result = FanOutResult()
    percentages = record.percentages()
    start = record.created_at or _utcnow()

    for tag in audit_tags(tags):
        plan = plan_for_tag(tag, overall_score=record.overall_score, percentages=percentages)

        def build(plan: AuditPlan = plan) -> models.AuditSchedule:
            return models.AuditSchedule(
                user_id=record.user_id,
                audit_type=plan.audit_type,
                scheduled_date=scheduled_date_for(start, plan),
                status=models.AuditStatus.SCHEDULED,
                scheduled_by=models.ScheduledBy.KPI_TRIGGER,
                priority=plan.priority,
                audit_scope=plan.scope,
                audit_method=audit_method_for(plan.audit_type),
                kpi_record_id=record.id,
                is_active=True,
            )

        provision_once(
            db,
            result,
            model=models.AuditSchedule,
            key=kpi_side_effect_key(record.id, FACTORY, tag.value),
            factory=FACTORY,
            tag=tag.value,
            build=build,
        )

    if result.created:
        lifecycle_services.log_event(
            db,
            user_id=record.user_id,
            event_type="audit",
            title="KPI Audit Triggered",
            description=f"{len(result.created)} audit(s) scheduled for KPI score {record.overall_score}%",
            category="negative",
            entity_type="kpi_record",
            entity_id=record.id,
            metadata={"audit_schedule_ids": list(result.created)},
        )
    return result


# ---------------------------------------------------------------------------
# LOOKUPS
# ---------------------------------------------------------------------------


def get_schedule_or_404(db: Session, schedule_id: str) -> models.AuditSchedule:
    schedule = db.query(models.AuditSchedule).filter(models.AuditSchedule.id == schedule_id).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="Audit schedule not found")
    return schedule


def list_for_kpi(db: Session, kpi_record_id: str) -> List[models.AuditSchedule]:
    return (
        db.query(models.AuditSchedule)
        .filter(models.AuditSchedule.kpi_record_id == kpi_record_id)
        .order_by(models.AuditSchedule.created_at.asc())
        .all()
    )


def list_scheduled(
    db: Session,
    *,
    user_id: Optional[str] = None,
    audit_type: Optional[models.AuditType] = None,
) -> List[models.AuditSchedule]:
    qs = db.query(models.AuditSchedule).filter(
        models.AuditSchedule.status == models.AuditStatus.SCHEDULED,
        models.AuditSchedule.is_active.is_(True),
    )
    if user_id:
        qs = qs.filter(models.AuditSchedule.user_id == user_id)
    if audit_type:
        qs = qs.filter(models.AuditSchedule.audit_type == audit_type)
    return qs.order_by(models.AuditSchedule.scheduled_date.asc()).all()


def list_overdue(db: Session, *, now: Optional[datetime] = None) -> List[models.AuditSchedule]:
    now = now or _utcnow()
    return (
        db.query(models.AuditSchedule)
        .filter(
            models.AuditSchedule.status == models.AuditStatus.SCHEDULED,
            models.AuditSchedule.is_active.is_(True),
            models.AuditSchedule.scheduled_date < now,
        )
        .order_by(models.AuditSchedule.scheduled_date.asc())
        .all()
    )


def list_upcoming(
    db: Session,
    *,
    days: int = UPCOMING_WINDOW_DAYS,
    now: Optional[datetime] = None,
) -> List[models.AuditSchedule]:
    now = now or _utcnow()
    return (
        db.query(models.AuditSchedule)
        .filter(
            models.AuditSchedule.status == models.AuditStatus.SCHEDULED,
            models.AuditSchedule.is_active.is_(True),
            models.AuditSchedule.scheduled_date >= now,
            models.AuditSchedule.scheduled_date <= now + timedelta(days=days),
        )
        .order_by(models.AuditSchedule.scheduled_date.asc())
        .all()
    )


def _count_by(db: Session, column) -> dict:
    rows = (
        db.query(column, func.count(models.AuditSchedule.id))
        .filter(models.AuditSchedule.is_active.is_(True))
        .group_by(column)
        .all()
    )
    return {value.value: count for value, count in rows}


def audit_stats(db: Session, *, now: Optional[datetime] = None) -> dict:
    by_status = _count_by(db, models.AuditSchedule.status)
    return {
        "total": sum(by_status.values()),
        "overdue": len(list_overdue(db, now=now)),
        "by_status": by_status,
        "by_type": _count_by(db, models.AuditSchedule.audit_type),
        "by_priority": _count_by(db, models.AuditSchedule.priority),
    }


# ---------------------------------------------------------------------------
# EXTERNAL ACTIONS (auditors / compliance)
# ---------------------------------------------------------------------------


def manual_schedule(db: Session, data: schemas.AuditScheduleManualCreate) -> models.AuditSchedule:
    account_services.get_user_or_404(db, data.user_id)
    if data.assigned_to_user_id:
        account_services.get_user_or_404(db, data.assigned_to_user_id)

    schedule = models.AuditSchedule(
        user_id=data.user_id,
        audit_type=data.audit_type,
        scheduled_date=data.scheduled_date,
        status=models.AuditStatus.SCHEDULED,
        scheduled_by=models.ScheduledBy.MANUAL,
        priority=data.priority,
        audit_scope=data.audit_scope,
        audit_method=audit_method_for(data.audit_type),
        assigned_to_user_id=data.assigned_to_user_id,
        kpi_record_id=None,
        is_active=True,
    )
    db.add(schedule)
    db.flush()

    lifecycle_services.log_event(
        db,
        user_id=schedule.user_id,
        event_type="audit",
        title="Audit Scheduled",
        description=f"{schedule.audit_type.value} audit scheduled manually",
        category="neutral",
        entity_type="audit_schedule",
        entity_id=schedule.id,
    )
    return schedule


def mark_in_progress(
    db: Session,
    schedule_id: str,
    assigned_to: Optional[str] = None,
) -> models.AuditSchedule:
    schedule = get_schedule_or_404(db, schedule_id)
    if assigned_to:
        account_services.get_user_or_404(db, assigned_to)

    apply_transition(
        db,
        entity_type="audit_schedule",
        entity_id=schedule.id,
        from_state=schedule.status,
        to_state=models.AuditStatus.IN_PROGRESS,
        after_obj={"assigned_to_user_id": assigned_to},
        user_id=schedule.user_id,
    )
    schedule.status = models.AuditStatus.IN_PROGRESS
    schedule.started_at = _utcnow()
    if assigned_to:
        schedule.assigned_to_user_id = assigned_to
    db.add(schedule)
    db.flush()
    return schedule


def complete_audit(
    db: Session,
    schedule_id: str,
    findings: str,
    recommendations: Optional[str] = None,
    risk_level: Optional[models.RiskLevel] = None,
    compliance_status: Optional[models.ComplianceStatus] = None,
) -> models.AuditSchedule:
    schedule = get_schedule_or_404(db, schedule_id)
    if schedule.status == models.AuditStatus.COMPLETED:
        raise HTTPException(status_code=400, detail="Audit is already completed")

    apply_transition(
        db,
        entity_type="audit_schedule",
        entity_id=schedule.id,
        from_state=schedule.status,
        to_state=models.AuditStatus.COMPLETED,
        after_obj={
            "findings": findings,
            "risk_level": risk_level.value if risk_level else None,
        },
        user_id=schedule.user_id,
    )

    schedule.status = models.AuditStatus.COMPLETED
    schedule.completed_date = _utcnow()
    schedule.findings = findings
    schedule.recommendations = recommendations
    schedule.risk_level = risk_level
    schedule.compliance_status = compliance_status
    db.add(schedule)
    db.flush()

    lifecycle_services.log_event(
        db,
        user_id=schedule.user_id,
        event_type="audit",
        title="Audit Completed",
        description=f"{schedule.audit_type.value} audit completed",
        category="neutral",
        entity_type="audit_schedule",
        entity_id=schedule.id,
        metadata={"compliance_status": compliance_status.value if compliance_status else None},
    )
    notification_service.notify_audit_completion(db, schedule)
    return schedule


def set_follow_up(
    db: Session,
    schedule_id: str,
    follow_up_date: datetime,
    notes: Optional[str] = None,
) -> models.AuditSchedule:
    schedule = get_schedule_or_404(db, schedule_id)
    schedule.follow_up_required = True
    schedule.follow_up_date = follow_up_date
    schedule.follow_up_notes = notes
    db.add(schedule)
    db.flush()
    return schedule


def deactivate(db: Session, schedule_id: str) -> models.AuditSchedule:
    schedule = get_schedule_or_404(db, schedule_id)
    schedule.is_active = False
    db.add(schedule)
    db.flush()
    logger.info("Audit schedule deactivated", extra={"audit_schedule_id": schedule.id})
    return schedule
