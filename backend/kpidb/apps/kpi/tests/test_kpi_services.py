from __future__ import annotations

import pytest
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy import inspect

from kpidb.apps.accounts.models import UserStatus
from kpidb.apps.audits.models import AuditSchedule
from kpidb.apps.kpi import schemas
from kpidb.apps.kpi import services as kpi_services
from kpidb.apps.kpi.models import AutomationStatus, KPIRecord
from kpidb.apps.lifecycle import services as lifecycle_services
from kpidb.apps.notifications.models import NotificationLog
from kpidb.apps.training.models import TrainingAssignment

STRONG = {
    "tat": 96,
    "major_negativity": 0,
    "quality": 0,
    "neighbor_check": 95,
    "negativity": 5,
    "app_usage": 95,
    "insufficiency": 0.5,
}

# Overall 60.
AVERAGE = {
    **STRONG,
    "tat": 90,
    "quality": 0.5,
    "neighbor_check": 50,
    "app_usage": 85,
    "insufficiency": 1.5,
}

WEAK = {
    "tat": 96,
    "major_negativity": 2.0,
    "quality": 0.5,
    "neighbor_check": 50,
    "negativity": 10,
    "app_usage": 50,
    "insufficiency": 3,
}


def _payload(user, percentages, period="2026-09", **extra):
    return schemas.KPISubmit(user_id=user.id, period=period, **percentages, **extra)


def _side_effect_counts(db):
    return {
        "training": db.query(TrainingAssignment).count(),
        "audits": db.query(AuditSchedule).count(),
        "notifications": db.query(NotificationLog).count(),
    }


def test_second_submission_for_period_conflicts(db_session, make_user):
    user = make_user()
    kpi_services.submit_kpi(db_session, _payload(user, STRONG))
    db_session.commit()
    before = _side_effect_counts(db_session)

    # The rejected payload would otherwise assign training and schedule audits.
    with pytest.raises(HTTPException) as excinfo:
        kpi_services.submit_kpi(db_session, _payload(user, WEAK))
    db_session.rollback()

    assert excinfo.value.status_code == 409
    assert db_session.query(KPIRecord).count() == 1
    assert before == {"training": 0, "audits": 0, "notifications": 1}
    assert _side_effect_counts(db_session) == before


def test_kpi_record_indexes_are_created(db_session):
    inspector = inspect(db_session.get_bind())
    indexes = {index["name"]: index["column_names"] for index in inspector.get_indexes("kpi_records")}

    assert indexes["ix_kpi_records_automation_status"] == ["automation_status"]
    assert indexes["ix_kpi_records_status_created"] == ["automation_status", "created_at"]


def test_same_period_for_different_users_is_allowed(db_session, make_user):
    first, second = make_user(), make_user()

    kpi_services.submit_kpi(db_session, _payload(first, STRONG))
    kpi_services.submit_kpi(db_session, _payload(second, STRONG))
    db_session.commit()

    assert db_session.query(KPIRecord).count() == 2


def test_unknown_user_is_not_found(db_session):
    payload = schemas.KPISubmit(user_id="missing", period="2026-09", **STRONG)

    with pytest.raises(HTTPException) as excinfo:
        kpi_services.submit_kpi(db_session, payload)

    assert excinfo.value.status_code == 404


@pytest.mark.parametrize("period", ["2026-13", "2026-00", "2026-9", "09-2026", ""])
def test_bad_periods_are_rejected(period):
    with pytest.raises(ValidationError):
        schemas.KPISubmit(user_id="u", period=period, **STRONG)


@pytest.mark.parametrize("field, value", [("tat", 101), ("major_negativity", 11), ("app_usage", -1)])
def test_out_of_range_percentages_are_rejected(field, value):
    with pytest.raises(ValidationError):
        schemas.KPISubmit(user_id="u", period="2026-09", **{**STRONG, field: value})


def test_comments_are_capped():
    with pytest.raises(ValidationError):
        schemas.KPISubmit(user_id="u", period="2026-09", comments="x" * 501, **STRONG)


@pytest.mark.parametrize(
    "percentages, score, status, category",
    [
        (STRONG, 100, UserStatus.ACTIVE, "positive"),
        (AVERAGE, 60, UserStatus.WARNING, "neutral"),
        (WEAK, 45, UserStatus.AUDITED, "negative"),
    ],
)
def test_submission_updates_standing_and_timeline(db_session, make_user, percentages, score, status, category):
    user = make_user()

    record = kpi_services.submit_kpi(db_session, _payload(user, percentages), submitted_by=user.id)
    db_session.commit()

    assert record.overall_score == score
    assert record.submitted_by == user.id
    assert user.status == status
    assert user.latest_kpi_score == score

    events = lifecycle_services.list_events_for_user(db_session, user_id=user.id, category=category)
    assert any(event.event_type == "kpi" and event.entity_id == record.id for event in events)


def test_preview_persists_nothing(db_session):
    result = kpi_services.preview(schemas.KPIPercentages(**WEAK))

    assert result["overall_score"] == 45
    assert result["triggered_actions"][0] == "basic_training"
    assert "Low application usage" in result["improvement_areas"]
    assert db_session.query(KPIRecord).count() == 0


def test_trigger_summary_splits_tags(db_session, make_user):
    user = make_user()
    record = kpi_services.submit_kpi(db_session, _payload(user, WEAK))
    db_session.commit()

    summary = kpi_services.trigger_summary(record)

    assert summary["training_tags"] == ["basic_training", "negativity_training", "app_usage_training"]
    assert summary["audit_tags"] == [
        "audit_call",
        "cross_check_3_months",
        "dummy_audit",
        "cross_verify_insuff",
    ]
    assert summary["notification_templates"] == [
        "KPI_NOTIFICATION",
        "TRAINING_ASSIGNMENT",
        "AUDIT_NOTIFICATION",
    ]


def test_stats_and_low_performers(db_session, make_user):
    strong_user, weak_user = make_user(), make_user()
    kpi_services.submit_kpi(db_session, _payload(strong_user, STRONG))
    weak = kpi_services.submit_kpi(db_session, _payload(weak_user, WEAK))
    kpi_services.submit_kpi(db_session, _payload(weak_user, STRONG, period="2026-10"))
    db_session.commit()

    stats = kpi_services.kpi_stats(db_session, period="2026-09")

    assert stats["total"] == 2
    assert stats["average_score"] == 72.5
    assert stats["by_rating"]["Outstanding"] == 1
    assert stats["by_rating"]["Need Improvement"] == 1
    assert stats["by_automation_status"] == {"COMPLETED": 2}
    assert stats["low_performers"] == 1

    low = kpi_services.list_low_performers(db_session)
    assert [record.id for record in low] == [weak.id]


def test_pending_automation_lists_failed_on_request(db_session, make_user):
    user = make_user()
    record = kpi_services.submit_kpi(db_session, _payload(user, STRONG))
    record.automation_status = AutomationStatus.FAILED
    db_session.commit()

    assert kpi_services.list_pending_automation(db_session, include_failed=False) == []
    assert [r.id for r in kpi_services.list_pending_automation(db_session)] == [record.id]


def test_deactivated_records_drop_out_of_listings(db_session, make_user):
    user = make_user()
    record = kpi_services.submit_kpi(db_session, _payload(user, STRONG))
    db_session.commit()

    kpi_services.deactivate(db_session, record.id)
    db_session.commit()

    assert kpi_services.list_for_user(db_session, user.id) == []
    assert len(kpi_services.list_for_user(db_session, user.id, include_inactive=True)) == 1
    with pytest.raises(HTTPException) as excinfo:
        kpi_services.get_record_or_404(db_session, "missing")
    assert excinfo.value.status_code == 404
