# backend/kpidb/apps/accounts/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from .models import UserRole, UserStatus


class UserBase(BaseModel):
    employee_id: str = Field(..., min_length=1, max_length=32)
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.FIELD_EXECUTIVE


class UserCreate(UserBase):
    pass


class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    status: UserStatus
    latest_kpi_score: Optional[int] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
