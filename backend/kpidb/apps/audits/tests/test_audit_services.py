from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from kpidb.apps.accounts.models import UserRole
from kpidb.apps.audits import models, schemas
from kpidb.apps.audits import services as audit_services
from kpidb.apps.kpi.triggers import ActionTag
from kpidb.apps.notifications import models as notification_models
from kpidb.apps.workflow import TransitionError


def _schedule(db, user, *, in_days=5, audit_type=models.AuditType.AUDIT_CALL, **kwargs):
    schedule = audit_services.manual_schedule(
        db,
        schemas.AuditScheduleManualCreate(
            user_id=user.id,
            audit_type=audit_type,
            scheduled_date=datetime.now(timezone.utc) + timedelta(days=in_days),
            **kwargs,
        ),
    )
    db.commit()
    return schedule


def test_manual_schedule_uses_standard_method(db_session, make_user):
    user = make_user()

    schedule = _schedule(db_session, user, audit_type=models.AuditType.DUMMY_AUDIT)

    assert schedule.kpi_record_id is None
    assert schedule.scheduled_by == models.ScheduledBy.MANUAL
    assert schedule.priority == models.AuditPriority.MEDIUM
    assert schedule.audit_method == "Dummy case audit to test performance"


def test_manual_schedule_checks_assignee(db_session, make_user):
    user = make_user()

    with pytest.raises(HTTPException) as excinfo:
        _schedule(db_session, user, assigned_to_user_id="missing")

    assert excinfo.value.status_code == 404


def test_plans_follow_tag_and_score():
    low = audit_services.plan_for_tag(ActionTag.AUDIT_CALL, overall_score=45, percentages={})
    mid = audit_services.plan_for_tag(ActionTag.AUDIT_CALL, overall_score=75, percentages={})
    insuff = audit_services.plan_for_tag(
        ActionTag.CROSS_VERIFY_INSUFF,
        overall_score=80,
        percentages={"insufficiency": 3.5},
    )

    assert low.priority == models.AuditPriority.HIGH
    assert mid.priority == models.AuditPriority.MEDIUM
    assert mid.scope == "Audit call required for KPI score 75%"
    assert insuff.scope == "Insufficiency rate 3.5% above 2% threshold"

    start = datetime(2026, 9, 1, tzinfo=timezone.utc)
    dummy = audit_services.plan_for_tag(ActionTag.DUMMY_AUDIT, overall_score=45, percentages={})
    assert audit_services.scheduled_date_for(start, dummy) == start + timedelta(days=audit_services.DUMMY_AUDIT_DAYS)
    assert audit_services.scheduled_date_for(start, low) == start + timedelta(days=audit_services.AUDIT_DAYS_HIGH)
    assert audit_services.scheduled_date_for(start, mid) == start + timedelta(days=audit_services.AUDIT_DAYS_DEFAULT)


def test_overdue_and_upcoming_are_read_time(db_session, make_user):
    user = make_user()
    late = _schedule(db_session, user, in_days=-3)
    soon = _schedule(db_session, user, in_days=2)
    _schedule(db_session, user, in_days=30)

    assert late.is_overdue()
    assert late.status == models.AuditStatus.SCHEDULED
    assert [s.id for s in audit_services.list_overdue(db_session)] == [late.id]
    assert [s.id for s in audit_services.list_upcoming(db_session)] == [soon.id]
    assert len(audit_services.list_scheduled(db_session, user_id=user.id)) == 3


def test_complete_requires_findings(db_session, make_user):
    user = make_user()
    schedule = _schedule(db_session, user)

    with pytest.raises(ValidationError):
        schemas.AuditCompletion(findings="")

    with pytest.raises(TransitionError):
        audit_services.complete_audit(db_session, schedule.id, findings="   ")
    assert schedule.status == models.AuditStatus.SCHEDULED


def test_start_and_complete_notifies_compliance(db_session, make_user):
    user = make_user()
    auditor = make_user(UserRole.COMPLIANCE)
    schedule = _schedule(db_session, user)

    audit_services.mark_in_progress(db_session, schedule.id, assigned_to=auditor.id)
    db_session.commit()
    assert schedule.status == models.AuditStatus.IN_PROGRESS
    assert schedule.assigned_to_user_id == auditor.id

    audit_services.complete_audit(
        db_session,
        schedule.id,
        findings="Two cases closed without neighbour check",
        recommendations="Shadow a senior FE for one week",
        risk_level=models.RiskLevel.MEDIUM,
        compliance_status=models.ComplianceStatus.PARTIALLY_COMPLIANT,
    )
    db_session.commit()

    assert schedule.status == models.AuditStatus.COMPLETED
    assert schedule.completed_date is not None
    assert schedule.risk_level == models.RiskLevel.MEDIUM
    logs = (
        db_session.query(notification_models.NotificationLog)
        .filter(notification_models.NotificationLog.audit_schedule_id == schedule.id)
        .all()
    )
    assert {log.recipient for log in logs} == {user.email, auditor.email}

    with pytest.raises(HTTPException) as excinfo:
        audit_services.complete_audit(db_session, schedule.id, findings="again")
    assert excinfo.value.status_code == 400


def test_follow_up_and_stats(db_session, make_user):
    user = make_user()
    first = _schedule(db_session, user, priority=models.AuditPriority.HIGH)
    _schedule(db_session, user, in_days=-1, audit_type=models.AuditType.CROSS_CHECK)

    follow_up = datetime.now(timezone.utc) + timedelta(days=30)
    audit_services.set_follow_up(db_session, first.id, follow_up, notes="Re-check in a month")
    db_session.commit()

    assert first.follow_up_required
    assert first.follow_up_notes == "Re-check in a month"

    stats = audit_services.audit_stats(db_session)
    assert stats["total"] == 2
    assert stats["overdue"] == 1
    assert stats["by_type"] == {"AUDIT_CALL": 1, "CROSS_CHECK": 1}
    assert stats["by_priority"] == {"HIGH": 1, "MEDIUM": 1}

    audit_services.deactivate(db_session, first.id)
    db_session.commit()
    assert audit_services.audit_stats(db_session)["total"] == 1
