from __future__ import annotations

import pytest

from kpidb.apps.lifecycle import models as lifecycle_models
from kpidb.apps.workflow import apply_transition, TransitionError


def test_apply_transition_records_lifecycle_event(db_session, make_user):
    user = make_user()

    apply_transition(
        db_session,
        entity_type="kpi_automation",
        entity_id="kpi-1",
        from_state="PENDING",
        to_state="PROCESSING",
        after_obj={"user_id": user.id, "attempt": 1},
        critical=True,
    )

    event = (
        db_session.query(lifecycle_models.LifecycleEvent)
        .filter(
            lifecycle_models.LifecycleEvent.entity_type == "kpi_automation",
            lifecycle_models.LifecycleEvent.entity_id == "kpi-1",
        )
        .first()
    )
    assert event is not None
    assert event.user_id == user.id
    assert event.event_type == "kpi_automation.processing"
    assert event.metadata_json["attempt"] == 1


def test_apply_transition_rejects_missing_findings(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            entity_type="audit_schedule",
            entity_id="audit-1",
            from_state="SCHEDULED",
            to_state="COMPLETED",
            after_obj={"findings": "   "},
        )

    assert excinfo.value.code == "missing_requirements"
    assert {item["field"] for item in excinfo.value.detail} == {"findings"}


def test_apply_transition_rejects_second_processing_run(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            entity_type="kpi_automation",
            entity_id="kpi-2",
            from_state="PROCESSING",
            to_state="PROCESSING",
        )

    assert excinfo.value.code == "invalid_transition"


def test_training_cannot_move_backwards(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            entity_type="training_assignment",
            entity_id="training-1",
            from_state="COMPLETED",
            to_state="IN_PROGRESS",
        )

    assert excinfo.value.code == "invalid_transition"


def test_notification_retry_requires_budget(db_session):
    with pytest.raises(TransitionError) as excinfo:
        apply_transition(
            db_session,
            entity_type="notification_log",
            entity_id="log-1",
            from_state="FAILED",
            to_state="PENDING",
            before_obj={"retry_count": 3, "max_retries": 3},
        )

    assert excinfo.value.code == "missing_requirements"
