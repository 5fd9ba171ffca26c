from __future__ import annotations

import pytest
from sqlalchemy.exc import SQLAlchemyError

from kpidb.apps.lifecycle import models, schemas
from kpidb.apps.lifecycle import services as lifecycle_services


def test_events_listed_newest_first_and_by_category(db_session, make_user):
    user = make_user()
    lifecycle_services.log_event(
        db_session,
        user_id=user.id,
        event_type="kpi",
        title="KPI Score Recorded: 2026-08",
        category="positive",
    )
    lifecycle_services.log_event(
        db_session,
        user_id=user.id,
        event_type="warning",
        title="Performance Warning Issued",
        category="negative",
        entity_type="kpi_record",
        entity_id="kpi-1",
        metadata={"overall_score": 30},
    )
    db_session.commit()

    events = lifecycle_services.list_events_for_user(db_session, user_id=user.id)
    assert [event.event_type for event in events] == ["warning", "kpi"]

    negative = lifecycle_services.list_events_for_user(db_session, user_id=user.id, category="negative")
    assert len(negative) == 1
    assert negative[0].metadata_json == {"overall_score": 30}

    read = schemas.LifecycleEventRead.model_validate(negative[0])
    assert read.metadata == {"overall_score": 30}

    by_entity = lifecycle_services.list_events_for_entity(db_session, entity_type="kpi_record", entity_id="kpi-1")
    assert [event.id for event in by_entity] == [negative[0].id]


def _broken_create_event(db, *, data):
    raise SQLAlchemyError("disk full")


def test_best_effort_logging_swallows_failures(db_session, monkeypatch):
    monkeypatch.setattr(lifecycle_services, "create_event", _broken_create_event)

    result = lifecycle_services.log_event(db_session, user_id=None, event_type="kpi", title="ignored")

    assert result is None
    assert db_session.query(models.LifecycleEvent).count() == 0


def test_critical_logging_raises(db_session, monkeypatch):
    monkeypatch.setattr(lifecycle_services, "create_event", _broken_create_event)

    with pytest.raises(SQLAlchemyError):
        lifecycle_services.log_event(
            db_session,
            user_id=None,
            event_type="kpi_automation.processing",
            title="transition",
            critical=True,
        )
