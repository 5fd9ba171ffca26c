from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...utils.identifiers import kpi_side_effect_key
from ..accounts import models as account_models
from ..accounts import services as account_services
from ..kpi.fanout import FanOutResult, provision_once
from ..kpi.scoring import improvement_areas
from ..kpi.triggers import audit_tags, notification_templates, training_tags
from ..workflow import check_transition

from . import models, providers

logger = logging.getLogger(__name__)

NOTIFICATION_RETRY_LIMIT = int(os.getenv("NOTIFICATION_RETRY_LIMIT", "100"))

FACTORY = "notification"

Role = account_models.UserRole
Template = models.NotificationTemplate

# Escalation roles notified in addition to the subject user.
ESCALATION_ROLES = {
    Template.KPI_NOTIFICATION: (Role.COORDINATOR, Role.MANAGER),
    Template.TRAINING_ASSIGNMENT: (Role.COORDINATOR, Role.MANAGER, Role.HOD),
    Template.AUDIT_NOTIFICATION: (Role.COMPLIANCE, Role.HOD),
    Template.WARNING_LETTER: (Role.COORDINATOR, Role.MANAGER, Role.COMPLIANCE, Role.HOD),
    Template.TRAINING_COMPLETION: (Role.COORDINATOR,),
    Template.AUDIT_COMPLETION: (Role.COMPLIANCE,),
}

# Audit notices go to compliance and HOD only.
NOTIFIES_SUBJECT = {
    Template.KPI_NOTIFICATION: True,
    Template.TRAINING_ASSIGNMENT: True,
    Template.AUDIT_NOTIFICATION: False,
    Template.WARNING_LETTER: True,
    Template.TRAINING_COMPLETION: True,
    Template.AUDIT_COMPLETION: True,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DeliveryResult:
    delivered: bool
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# RECIPIENTS
# ---------------------------------------------------------------------------


def resolve_recipients(
    db: Session,
    user: Optional[account_models.User],
    template_type: models.NotificationTemplate,
) -> List[Tuple[str, str]]:
    """
    ``(email, role)`` pairs for a template, subject first, no repeated emails.
    """
    recipients: List[Tuple[str, str]] = []
    seen = set()

    def _add(email: Optional[str], role: str) -> None:
        if not email:
            return
        email = email.strip().lower()
        if email in seen:
            return
        seen.add(email)
        recipients.append((email, role))

    if user is not None and NOTIFIES_SUBJECT.get(template_type, True):
        _add(user.email, "FE")

    for other in account_services.active_users_in_roles(db, ESCALATION_ROLES.get(template_type, ())):
        _add(other.email, other.role.value)
    return recipients


# ---------------------------------------------------------------------------
# DELIVERY
# ---------------------------------------------------------------------------


def _send(provider: providers.NotificationProvider, log: models.NotificationLog) -> DeliveryResult:
    try:
        provider.send(
            template_type=log.template_type.value,
            recipient=log.recipient,
            subject=log.subject,
            context=log.context_json or {},
            correlation_id=log.idempotency_key,
        )
    except Exception as exc:
        return DeliveryResult(False, str(exc) or exc.__class__.__name__)
    return DeliveryResult(True)


def deliver(db: Session, log: models.NotificationLog) -> DeliveryResult:
    """Hand a PENDING log to the provider and record SENT or FAILED."""
    log.last_attempt_at = _utcnow()
    try:
        provider, configured = providers.get_notification_provider()
    except ValueError as exc:
        # Misconfigured provider: the log fails and stays retryable.
        result = DeliveryResult(False, str(exc))
    else:
        if not configured:
            result = DeliveryResult(False, "No provider configured")
        else:
            result = _send(provider, log)

    target = models.NotificationStatus.SENT if result.delivered else models.NotificationStatus.FAILED
    check_transition(
        db,
        entity_type="notification_log",
        from_state=log.status,
        to_state=target,
        before_obj=log,
    )
    log.status = target
    if result.delivered:
        log.sent_at = _utcnow()
        log.error = None
    else:
        log.error = result.error
        logger.warning(
            "Notification delivery failed",
            extra={
                "notification_log_id": log.id,
                "template_type": log.template_type.value,
                "recipient": log.recipient,
                "error": result.error,
            },
        )
    db.add(log)
    db.flush()
    return result


def dispatch(
    db: Session,
    *,
    template_type: models.NotificationTemplate,
    recipient: str,
    subject: str,
    context: Optional[dict] = None,
    recipient_role: Optional[str] = None,
    user_id: Optional[str] = None,
    kpi_record_id: Optional[str] = None,
    training_assignment_id: Optional[str] = None,
    audit_schedule_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> models.NotificationLog:
    log = models.NotificationLog(
        recipient=recipient,
        recipient_role=recipient_role,
        subject=subject,
        template_type=template_type,
        context_json=context or {},
        status=models.NotificationStatus.PENDING,
        retry_count=0,
        user_id=user_id,
        kpi_record_id=kpi_record_id,
        training_assignment_id=training_assignment_id,
        audit_schedule_id=audit_schedule_id,
        idempotency_key=idempotency_key,
    )
    db.add(log)
    db.flush()
    deliver(db, log)
    return log


# ---------------------------------------------------------------------------
# KPI FAN-OUT
# ---------------------------------------------------------------------------


def _kpi_message(record, user, template_type: models.NotificationTemplate, tags: List[str]) -> Tuple[str, dict]:
    base = {
        "user_name": user.full_name if user else None,
        "employee_id": user.employee_id if user else None,
        "period": record.period,
        "kpi_score": record.overall_score,
        "rating": record.rating.value if record.rating else None,
    }
    if template_type == Template.TRAINING_ASSIGNMENT:
        types = [tag.value for tag in training_tags(tags)]
        return (
            f"Training Required: {', '.join(types)}",
            {**base, "training_count": len(types), "training_types": types},
        )
    if template_type == Template.AUDIT_NOTIFICATION:
        types = [tag.value for tag in audit_tags(tags)]
        return (
            f"Audit Notification: {', '.join(types)}",
            {**base, "audit_count": len(types), "audit_types": types},
        )
    if template_type == Template.WARNING_LETTER:
        return (
            "Performance Warning Notice",
            {**base, "improvement_areas": improvement_areas(record.scores())},
        )
    return (
        f"KPI Score Update: {record.period}",
        {**base, "scores": record.scores(), "actions": list(tags)},
    )


def notify_for_kpi(db: Session, *, record, tags: Iterable[str]) -> FanOutResult:
    """
    Create and dispatch the notification logs a KPI record calls for.

    One log per (template, recipient). Logs found from an earlier run are
    left alone; failed ones are picked up by the retry contract instead.
    """
    result = FanOutResult()
    tags = [getattr(tag, "value", tag) for tag in tags]
    user = account_services.get_user(db, record.user_id)

    for template_type in notification_templates(tags):
        subject, context = _kpi_message(record, user, template_type, tags)
        for email, role in resolve_recipients(db, user, template_type):

            def build(email: str = email, role: str = role) -> models.NotificationLog:
                return models.NotificationLog(
                    recipient=email,
                    recipient_role=role,
                    subject=subject,
                    template_type=template_type,
                    context_json=context,
                    status=models.NotificationStatus.PENDING,
                    retry_count=0,
                    user_id=record.user_id,
                    kpi_record_id=record.id,
                )

            created_before = len(result.created)
            log = provision_once(
                db,
                result,
                model=models.NotificationLog,
                key=kpi_side_effect_key(record.id, FACTORY, template_type.value.lower(), email),
                factory=FACTORY,
                tag=template_type.value,
                build=build,
            )
            if log is not None and len(result.created) > created_before:
                deliver(db, log)
    return result


def notify_training_completion(db: Session, assignment) -> List[models.NotificationLog]:
    user = account_services.get_user(db, assignment.user_id)
    logs = []
    for email, role in resolve_recipients(db, user, Template.TRAINING_COMPLETION):
        logs.append(
            dispatch(
                db,
                template_type=Template.TRAINING_COMPLETION,
                recipient=email,
                recipient_role=role,
                subject=f"Training Completed: {assignment.training_type.value}",
                context={
                    "user_name": user.full_name if user else None,
                    "training_type": assignment.training_type.value,
                    "score": assignment.score,
                },
                user_id=assignment.user_id,
                kpi_record_id=assignment.kpi_record_id,
                training_assignment_id=assignment.id,
            )
        )
    return logs


def notify_audit_completion(db: Session, schedule) -> List[models.NotificationLog]:
    user = account_services.get_user(db, schedule.user_id)
    logs = []
    for email, role in resolve_recipients(db, user, Template.AUDIT_COMPLETION):
        logs.append(
            dispatch(
                db,
                template_type=Template.AUDIT_COMPLETION,
                recipient=email,
                recipient_role=role,
                subject=f"Audit Completed: {schedule.audit_type.value}",
                context={
                    "user_name": user.full_name if user else None,
                    "audit_type": schedule.audit_type.value,
                    "findings": schedule.findings,
                    "recommendations": schedule.recommendations,
                },
                user_id=schedule.user_id,
                kpi_record_id=schedule.kpi_record_id,
                audit_schedule_id=schedule.id,
            )
        )
    return logs


# ---------------------------------------------------------------------------
# RETRY CONTRACT
# ---------------------------------------------------------------------------


def can_retry(log: models.NotificationLog) -> bool:
    return log.can_retry


def increment_retry(log: models.NotificationLog) -> models.NotificationLog:
    if (log.retry_count or 0) < (log.max_retries or 0):
        log.retry_count = (log.retry_count or 0) + 1
    return log


def get_log_or_404(db: Session, log_id: str) -> models.NotificationLog:
    log = db.query(models.NotificationLog).filter(models.NotificationLog.id == log_id).first()
    if not log:
        raise HTTPException(status_code=404, detail="Notification log not found")
    return log


def retry_notification(db: Session, log: models.NotificationLog) -> models.NotificationLog:
    if not can_retry(log):
        raise HTTPException(
            status_code=409,
            detail="Notification is not eligible for retry",
        )
    check_transition(
        db,
        entity_type="notification_log",
        from_state=log.status,
        to_state=models.NotificationStatus.PENDING,
        before_obj=log,
    )
    increment_retry(log)
    log.status = models.NotificationStatus.PENDING
    db.add(log)
    db.flush()
    deliver(db, log)
    return log


def retryable_query(
    db: Session,
    *,
    template_type: Optional[models.NotificationTemplate] = None,
    kpi_record_id: Optional[str] = None,
):
    qs = db.query(models.NotificationLog).filter(
        models.NotificationLog.status == models.NotificationStatus.FAILED,
        models.NotificationLog.retry_count < models.NotificationLog.max_retries,
        models.NotificationLog.is_active.is_(True),
    )
    if template_type:
        qs = qs.filter(models.NotificationLog.template_type == template_type)
    if kpi_record_id:
        qs = qs.filter(models.NotificationLog.kpi_record_id == kpi_record_id)
    return qs


def retry_failed_notifications(
    db: Session,
    *,
    template_type: Optional[models.NotificationTemplate] = None,
    kpi_record_id: Optional[str] = None,
    limit: Optional[int] = None,
) -> dict:
    """
    Re-dispatch every retry-eligible log, each one independently.

    Returns ``{"retried", "sent", "failed", "results"}``.
    """
    logs = (
        retryable_query(db, template_type=template_type, kpi_record_id=kpi_record_id)
        .order_by(models.NotificationLog.created_at.asc())
        .limit(limit or NOTIFICATION_RETRY_LIMIT)
        .all()
    )

    results = []
    sent = failed = 0
    for log in logs:
        try:
            with db.begin_nested():
                retry_notification(db, log)
        except Exception as exc:
            logger.warning(
                "Notification retry could not be recorded",
                extra={"notification_log_id": log.id, "error": str(exc)},
            )
            results.append({"id": log.id, "status": "ERROR", "retry_count": log.retry_count, "error": str(exc)})
            failed += 1
            continue

        if log.status == models.NotificationStatus.SENT:
            sent += 1
        else:
            failed += 1
        results.append(
            {
                "id": log.id,
                "status": log.status.value,
                "retry_count": log.retry_count,
                "error": log.error,
            }
        )

    if logs:
        logger.info(
            "Notification retry sweep finished",
            extra={"retried": len(logs), "sent": sent, "failed": failed},
        )
    return {"retried": len(logs), "sent": sent, "failed": failed, "results": results}


# ---------------------------------------------------------------------------
# READ SIDE
# ---------------------------------------------------------------------------


def list_logs(
    db: Session,
    *,
    status: Optional[models.NotificationStatus] = None,
    template_type: Optional[models.NotificationTemplate] = None,
    recipient: Optional[str] = None,
    kpi_record_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 200,
) -> List[models.NotificationLog]:
    qs = db.query(models.NotificationLog)
    if status:
        qs = qs.filter(models.NotificationLog.status == status)
    if template_type:
        qs = qs.filter(models.NotificationLog.template_type == template_type)
    if recipient:
        qs = qs.filter(models.NotificationLog.recipient.ilike(f"%{recipient}%"))
    if kpi_record_id:
        qs = qs.filter(models.NotificationLog.kpi_record_id == kpi_record_id)
    if start:
        qs = qs.filter(models.NotificationLog.created_at >= start)
    if end:
        qs = qs.filter(models.NotificationLog.created_at <= end)
    return qs.order_by(models.NotificationLog.created_at.desc()).limit(limit).all()


def notification_stats(db: Session) -> dict:
    by_status = {
        status.value: count
        for status, count in (
            db.query(models.NotificationLog.status, func.count(models.NotificationLog.id))
            .group_by(models.NotificationLog.status)
            .all()
        )
    }
    by_template = {
        template.value: count
        for template, count in (
            db.query(models.NotificationLog.template_type, func.count(models.NotificationLog.id))
            .group_by(models.NotificationLog.template_type)
            .all()
        )
    }
    retryable = retryable_query(db).count()
    exhausted = (
        db.query(func.count(models.NotificationLog.id))
        .filter(
            models.NotificationLog.status == models.NotificationStatus.FAILED,
            models.NotificationLog.retry_count >= models.NotificationLog.max_retries,
        )
        .scalar()
    )
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_template": by_template,
        "retryable": retryable,
        "exhausted": exhausted or 0,
    }
