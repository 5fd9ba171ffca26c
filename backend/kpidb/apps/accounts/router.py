# backend/kpidb/apps/accounts/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ..lifecycle import schemas as lifecycle_schemas
from ..lifecycle import services as lifecycle_services
from . import models, schemas, services

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=List[schemas.UserRead])
def list_users(
    role: Optional[models.UserRole] = None,
    user_status: Optional[models.UserStatus] = None,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
):
    return services.list_users(
        db,
        role=role,
        status=user_status,
        include_inactive=include_inactive,
    )


@router.post(
    "",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
):
    user = services.create_user(db, payload)
    db.commit()
    db.refresh(user)
    return user


@router.get("/{user_id}", response_model=schemas.UserRead)
def get_user(user_id: str, db: Session = Depends(get_read_db)):
    return services.get_user_or_404(db, user_id)


@router.get(
    "/{user_id}/lifecycle",
    response_model=List[lifecycle_schemas.LifecycleEventRead],
)
def get_user_lifecycle(
    user_id: str,
    category: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_read_db),
):
    services.get_user_or_404(db, user_id)
    return lifecycle_services.list_events_for_user(
        db,
        user_id=user_id,
        category=category,
        limit=limit,
    )
