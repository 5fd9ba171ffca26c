from __future__ import annotations

import pytest
from fastapi import HTTPException

from kpidb.apps.accounts.models import UserRole, UserStatus
from kpidb.apps.audits import models as audit_models
from kpidb.apps.audits import services as audit_services
from kpidb.apps.kpi import automation, schemas
from kpidb.apps.kpi import services as kpi_services
from kpidb.apps.kpi.models import AutomationStatus, KPIRecord
from kpidb.apps.kpi.scoring import Rating, score_breakdown
from kpidb.apps.lifecycle import models as lifecycle_models
from kpidb.apps.notifications import models as notification_models
from kpidb.apps.notifications import providers
from kpidb.apps.training import models as training_models
from kpidb.apps.training import services as training_services
from kpidb.apps.workflow import TransitionError

MIXED = {
    "tat": 96,
    "major_negativity": 2.0,
    "quality": 0.5,
    "neighbor_check": 50,
    "negativity": 10,
    "app_usage": 50,
    "insufficiency": 3,
}

# Overall 30: warning letter territory.
POOR = {
    "tat": 80,
    "major_negativity": 3,
    "quality": 0.5,
    "neighbor_check": 50,
    "negativity": 30,
    "app_usage": 95,
    "insufficiency": 0.5,
}


def _submit(db, user, percentages, period="2026-09"):
    record = kpi_services.submit_kpi(
        db,
        schemas.KPISubmit(user_id=user.id, period=period, **percentages),
    )
    db.commit()
    return record


def _pending_record(db, user, percentages, period="2026-08"):
    breakdown = score_breakdown(percentages)
    record = KPIRecord(
        user_id=user.id,
        period=period,
        overall_score=breakdown.overall_score,
        rating=breakdown.rating,
        triggered_actions=[],
        automation_status=AutomationStatus.PENDING,
        automation_attempts=0,
    )
    for name, value in percentages.items():
        setattr(record, f"{name}_percentage", value)
        setattr(record, f"{name}_score", breakdown.scores[name])
    db.add(record)
    db.commit()
    return record


def _escalation_staff(make_user):
    return {
        role: make_user(role)
        for role in (UserRole.COORDINATOR, UserRole.MANAGER, UserRole.HOD, UserRole.COMPLIANCE)
    }


def test_submission_fans_out_training_audits_and_notifications(db_session, make_user):
    user = make_user()

    record = _submit(db_session, user, MIXED)

    assert record.overall_score == 45
    assert record.rating == Rating.NEED_IMPROVEMENT
    assert record.automation_status == AutomationStatus.COMPLETED
    assert record.automation_attempts == 1
    assert record.processed_at is not None
    assert record.triggered_actions == [
        "basic_training",
        "audit_call",
        "cross_check_3_months",
        "dummy_audit",
        "negativity_training",
        "app_usage_training",
        "cross_verify_insuff",
    ]

    trainings = training_services.list_for_kpi(db_session, record.id)
    assert {t.training_type for t in trainings} == {
        training_models.TrainingType.BASIC,
        training_models.TrainingType.NEGATIVITY_HANDLING,
        training_models.TrainingType.APP_USAGE,
    }
    audits = audit_services.list_for_kpi(db_session, record.id)
    assert {a.audit_type for a in audits} == {
        audit_models.AuditType.AUDIT_CALL,
        audit_models.AuditType.CROSS_CHECK,
        audit_models.AuditType.DUMMY_AUDIT,
        audit_models.AuditType.CROSS_VERIFY_INSUFF,
    }
    assert all(a.status == audit_models.AuditStatus.SCHEDULED for a in audits)

    # No escalation staff exist, and audit notices skip the subject.
    logs = db_session.query(notification_models.NotificationLog).all()
    assert {log.template_type for log in logs} == {
        notification_models.NotificationTemplate.KPI_NOTIFICATION,
        notification_models.NotificationTemplate.TRAINING_ASSIGNMENT,
    }
    assert all(log.status == notification_models.NotificationStatus.FAILED for log in logs)
    assert all(log.error == "No provider configured" for log in logs)

    db_session.refresh(user)
    assert user.status == UserStatus.AUDITED
    assert user.latest_kpi_score == 45


def test_reprocess_reuses_existing_side_effects(db_session, make_user):
    user = make_user()
    record = _submit(db_session, user, MIXED)
    training_ids = sorted(t.id for t in training_services.list_for_kpi(db_session, record.id))
    log_count = db_session.query(notification_models.NotificationLog).count()

    record, result = kpi_services.reprocess(db_session, record.id)
    db_session.commit()

    assert result.success
    assert record.automation_attempts == 2
    assert result.training.created == []
    assert sorted(result.training.reused) == training_ids
    assert len(result.audits.reused) == 4
    assert sorted(t.id for t in training_services.list_for_kpi(db_session, record.id)) == training_ids
    assert db_session.query(notification_models.NotificationLog).count() == log_count


def test_warning_letter_notifies_escalation_roles(db_session, make_user):
    user = make_user()
    staff = _escalation_staff(make_user)

    record = _submit(db_session, user, POOR)

    assert record.overall_score == 30
    assert "warning_letter" in record.triggered_actions
    logs = db_session.query(notification_models.NotificationLog).all()
    by_template = {}
    for log in logs:
        by_template.setdefault(log.template_type, set()).add(log.recipient)

    Template = notification_models.NotificationTemplate
    assert by_template[Template.KPI_NOTIFICATION] == {
        user.email,
        staff[UserRole.COORDINATOR].email,
        staff[UserRole.MANAGER].email,
    }
    assert user.email not in by_template[Template.AUDIT_NOTIFICATION]
    assert by_template[Template.AUDIT_NOTIFICATION] == {
        staff[UserRole.COMPLIANCE].email,
        staff[UserRole.HOD].email,
    }
    assert len(by_template[Template.WARNING_LETTER]) == 5
    assert len(logs) == 14


def test_warning_event_logged_once_across_runs(db_session, make_user):
    user = make_user()
    record = _submit(db_session, user, POOR)

    kpi_services.reprocess(db_session, record.id)
    kpi_services.reprocess(db_session, record.id)
    db_session.commit()

    warnings = (
        db_session.query(lifecycle_models.LifecycleEvent)
        .filter(
            lifecycle_models.LifecycleEvent.entity_id == record.id,
            lifecycle_models.LifecycleEvent.event_type == "warning",
        )
        .count()
    )
    assert warnings == 1


def test_high_priority_training_due_sooner(db_session, make_user):
    user = make_user()
    record = _submit(db_session, user, POOR)

    basic = next(
        t
        for t in training_services.list_for_kpi(db_session, record.id)
        if t.training_type == training_models.TrainingType.BASIC
    )
    delta = basic.due_date.replace(tzinfo=None) - record.created_at.replace(tzinfo=None)
    assert delta.days == training_services.TRAINING_DUE_DAYS_HIGH


def test_evaluator_failure_marks_record_failed(db_session, make_user):
    user = make_user()
    record = _pending_record(db_session, user, MIXED)

    def boom(percentages, overall_score):
        raise RuntimeError("rules unavailable")

    result = automation.run_automation(db_session, record, evaluator=boom)
    db_session.commit()

    assert not result.success
    assert record.automation_status == AutomationStatus.FAILED
    assert record.automation_error == "Trigger evaluation failed: rules unavailable"
    assert record.triggered_actions == []
    assert training_services.list_for_kpi(db_session, record.id) == []

    retry = automation.run_automation(db_session, record)
    db_session.commit()

    assert retry.success
    assert record.automation_status == AutomationStatus.COMPLETED
    assert record.automation_error is None
    assert record.automation_attempts == 2


def test_unexpected_stage_error_keeps_other_stages(db_session, make_user, monkeypatch):
    user = make_user()
    record = _pending_record(db_session, user, MIXED)

    def explode(*args, **kwargs):
        raise RuntimeError("audit calendar offline")

    monkeypatch.setattr(audit_services, "provision_for_kpi", explode)

    result = automation.run_automation(db_session, record)
    db_session.commit()

    assert record.automation_status == AutomationStatus.FAILED
    assert record.automation_error == "Automation failed: audit calendar offline"
    assert result.audits.ids == []
    assert len(result.training.created) == 3
    assert len(training_services.list_for_kpi(db_session, record.id)) == 3
    assert audit_services.list_for_kpi(db_session, record.id) == []
    assert db_session.query(notification_models.NotificationLog).count() > 0

    monkeypatch.undo()
    retry = automation.run_automation(db_session, record)
    db_session.commit()

    assert retry.success
    assert retry.training.created == []
    assert len(retry.training.reused) == 3
    assert len(retry.audits.created) == 4


def test_misconfigured_provider_does_not_fail_automation(db_session, make_user, monkeypatch):
    monkeypatch.setenv("NOTIFICATIONS_PROVIDER", "smtpx")
    user = make_user()

    record = _submit(db_session, user, MIXED)

    assert record.automation_status == AutomationStatus.COMPLETED
    assert record.automation_error is None
    assert len(training_services.list_for_kpi(db_session, record.id)) == 3
    assert len(audit_services.list_for_kpi(db_session, record.id)) == 4
    logs = db_session.query(notification_models.NotificationLog).all()
    assert logs
    assert {log.status for log in logs} == {notification_models.NotificationStatus.FAILED}
    assert {log.error for log in logs} == {"Unsupported notification provider: smtpx"}
    assert all(log.can_retry for log in logs)


def test_failed_insert_stays_local_to_its_tag(db_session, make_user, monkeypatch):
    user = make_user()
    record = _pending_record(db_session, user, MIXED)

    # due_date is NOT NULL, so every training insert fails at flush.
    monkeypatch.setattr(training_services, "due_date_for", lambda start, priority: None)

    result = automation.run_automation(db_session, record)
    db_session.commit()

    assert result.success
    assert record.automation_status == AutomationStatus.COMPLETED
    assert len(result.training.errors) == 3
    assert {error["factory"] for error in result.errors} == {"training"}
    assert training_services.list_for_kpi(db_session, record.id) == []
    assert len(audit_services.list_for_kpi(db_session, record.id)) == 4


def test_provider_errors_do_not_fail_automation(db_session, make_user, monkeypatch):
    class BrokenProvider(providers.NotificationProvider):
        def send(self, **kwargs):
            raise ConnectionError("smtp down")

    monkeypatch.setattr(providers, "get_notification_provider", lambda: (BrokenProvider(), True))
    user = make_user()

    record = _submit(db_session, user, MIXED)

    assert record.automation_status == AutomationStatus.COMPLETED
    logs = db_session.query(notification_models.NotificationLog).all()
    assert logs
    assert {log.error for log in logs} == {"smtp down"}


def test_logging_provider_marks_logs_sent(db_session, make_user, monkeypatch):
    monkeypatch.setenv("NOTIFICATIONS_PROVIDER", "log")
    user = make_user()

    _submit(db_session, user, MIXED)

    logs = db_session.query(notification_models.NotificationLog).all()
    assert logs
    assert all(log.status == notification_models.NotificationStatus.SENT for log in logs)
    assert all(log.sent_at is not None for log in logs)


def test_record_already_processing_is_rejected(db_session, make_user):
    user = make_user()
    record = _pending_record(db_session, user, MIXED)
    record.automation_status = AutomationStatus.PROCESSING
    db_session.commit()

    with pytest.raises(TransitionError):
        automation.run_automation(db_session, record)

    with pytest.raises(HTTPException) as excinfo:
        kpi_services.reprocess(db_session, record.id)
    assert excinfo.value.status_code == 409
