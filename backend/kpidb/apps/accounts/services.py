# backend/kpidb/apps/accounts/services.py

from __future__ import annotations

from typing import Iterable, List, Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import models, schemas

# Scores below these move the user into the matching standing.
AUDITED_BELOW = 50
WARNING_BELOW = 70


def _normalise_email(value: str) -> str:
    return value.strip().lower()


def _normalise_employee_id(value: str) -> str:
    return value.strip().upper()


def get_user(db: Session, user_id: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_or_404(db: Session, user_id: str) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def create_user(db: Session, data: schemas.UserCreate) -> models.User:
    email = _normalise_email(data.email)
    employee_id = _normalise_employee_id(data.employee_id)

    dup = (
        db.query(models.User)
        .filter(
            or_(
                models.User.email == email,
                models.User.employee_id == employee_id,
            )
        )
        .first()
    )
    if dup:
        raise HTTPException(
            status_code=409,
            detail="A user with this email or employee id already exists.",
        )

    user = models.User(
        employee_id=employee_id,
        email=email,
        full_name=data.full_name.strip(),
        role=data.role,
        status=models.UserStatus.ACTIVE,
        is_active=True,
    )
    db.add(user)
    db.flush()
    return user


def list_users(
    db: Session,
    *,
    role: Optional[models.UserRole] = None,
    status: Optional[models.UserStatus] = None,
    include_inactive: bool = False,
) -> List[models.User]:
    qs = db.query(models.User)
    if role:
        qs = qs.filter(models.User.role == role)
    if status:
        qs = qs.filter(models.User.status == status)
    if not include_inactive:
        qs = qs.filter(models.User.is_active.is_(True))
    return qs.order_by(models.User.full_name.asc()).all()


def active_users_in_roles(
    db: Session,
    roles: Iterable[models.UserRole],
) -> List[models.User]:
    """
    Active users holding any of ``roles``, in a stable order.

    Used to build escalation recipient lists for notifications.
    """
    roles = list(roles)
    if not roles:
        return []
    return (
        db.query(models.User)
        .filter(
            models.User.role.in_(roles),
            models.User.is_active.is_(True),
        )
        .order_by(models.User.role.asc(), models.User.email.asc())
        .all()
    )


def standing_for_score(score: int) -> models.UserStatus:
    if score < AUDITED_BELOW:
        return models.UserStatus.AUDITED
    if score < WARNING_BELOW:
        return models.UserStatus.WARNING
    return models.UserStatus.ACTIVE


def apply_kpi_standing(db: Session, user: models.User, *, score: int) -> models.User:
    """Copy the latest score onto the user and move their standing."""
    user.latest_kpi_score = score
    if user.status != models.UserStatus.INACTIVE:
        user.status = standing_for_score(score)
    db.add(user)
    db.flush()
    return user
