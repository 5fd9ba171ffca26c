# backend/kpidb/apps/accounts/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class UserRole(str, enum.Enum):
    FIELD_EXECUTIVE = "FIELD_EXECUTIVE"
    COORDINATOR = "COORDINATOR"
    MANAGER = "MANAGER"
    HOD = "HOD"
    COMPLIANCE = "COMPLIANCE"
    ADMIN = "ADMIN"


class UserStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    WARNING = "WARNING"
    AUDITED = "AUDITED"
    INACTIVE = "INACTIVE"


# ---------------------------------------------------------------------------
# USER
# ---------------------------------------------------------------------------


class User(Base):
    """
    Person known to the KPI engine.

    Field executives are the subjects of KPI records. Coordinators, managers,
    HODs and compliance staff form the recipient directory for notifications.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_active", "role", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)

    employee_id = Column(
        String(32),
        nullable=False,
        unique=True,
        doc="HR employee code.",
    )
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)

    role = Column(
        SAEnum(UserRole, name="user_role_enum", native_enum=False),
        nullable=False,
        default=UserRole.FIELD_EXECUTIVE,
        index=True,
    )
    status = Column(
        SAEnum(UserStatus, name="user_status_enum", native_enum=False),
        nullable=False,
        default=UserStatus.ACTIVE,
        index=True,
    )

    # Copied from the most recent KPI submission.
    latest_kpi_score = Column(Integer, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
