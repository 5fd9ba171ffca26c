from __future__ import annotations

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from kpidb.apps.accounts import models, schemas, services


def _create(db, **overrides):
    data = {
        "employee_id": "fe-100",
        "email": "Asha.Rao@Example.com",
        "full_name": "  Asha Rao ",
        "role": models.UserRole.FIELD_EXECUTIVE,
    }
    data.update(overrides)
    user = services.create_user(db, schemas.UserCreate(**data))
    db.commit()
    return user


def test_create_user_normalises_identifiers(db_session):
    user = _create(db_session)

    assert user.email == "asha.rao@example.com"
    assert user.employee_id == "FE-100"
    assert user.full_name == "Asha Rao"
    assert user.status == models.UserStatus.ACTIVE


@pytest.mark.parametrize(
    "overrides",
    [
        {"employee_id": "FE-200", "email": "ASHA.RAO@example.com"},
        {"employee_id": "FE-100", "email": "someone.else@example.com"},
    ],
)
def test_duplicate_email_or_employee_id_conflicts(db_session, overrides):
    _create(db_session)

    with pytest.raises(HTTPException) as excinfo:
        _create(db_session, **overrides)

    assert excinfo.value.status_code == 409


def test_invalid_email_is_rejected():
    with pytest.raises(ValidationError):
        schemas.UserCreate(employee_id="FE-1", email="not-an-email", full_name="X")


@pytest.mark.parametrize(
    "score, standing",
    [
        (100, models.UserStatus.ACTIVE),
        (70, models.UserStatus.ACTIVE),
        (69, models.UserStatus.WARNING),
        (50, models.UserStatus.WARNING),
        (49, models.UserStatus.AUDITED),
    ],
)
def test_standing_for_score(score, standing):
    assert services.standing_for_score(score) == standing


def test_inactive_standing_is_kept(db_session, make_user):
    user = make_user()
    user.status = models.UserStatus.INACTIVE
    db_session.commit()

    services.apply_kpi_standing(db_session, user, score=30)

    assert user.status == models.UserStatus.INACTIVE
    assert user.latest_kpi_score == 30


def test_directory_lookup_skips_inactive_users(db_session, make_user):
    manager = make_user(models.UserRole.MANAGER)
    hod = make_user(models.UserRole.HOD)
    make_user(models.UserRole.MANAGER, is_active=False)
    make_user(models.UserRole.COORDINATOR)

    found = services.active_users_in_roles(db_session, [models.UserRole.MANAGER, models.UserRole.HOD])

    assert {user.id for user in found} == {manager.id, hod.id}
    assert services.active_users_in_roles(db_session, []) == []
    assert len(services.list_users(db_session, role=models.UserRole.MANAGER)) == 1
    assert len(services.list_users(db_session, role=models.UserRole.MANAGER, include_inactive=True)) == 2
