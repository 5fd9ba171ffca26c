# backend/kpidb/apps/training/models.py

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything here is stored as UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# ENUMS
# ---------------------------------------------------------------------------


class TrainingType(str, enum.Enum):
    BASIC = "BASIC"
    NEGATIVITY_HANDLING = "NEGATIVITY_HANDLING"
    DOS_DONTS = "DOS_DONTS"
    APP_USAGE = "APP_USAGE"


class AssignedBy(str, enum.Enum):
    KPI_TRIGGER = "KPI_TRIGGER"
    MANUAL = "MANUAL"
    SCHEDULED = "SCHEDULED"
    SYSTEM = "SYSTEM"


class TrainingStatus(str, enum.Enum):
    """
    Stored values are ASSIGNED, IN_PROGRESS and COMPLETED.
    OVERDUE is only reported by ``TrainingAssignment.effective_status``.
    """

    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    OVERDUE = "OVERDUE"


OPEN_STATUSES = (TrainingStatus.ASSIGNED, TrainingStatus.IN_PROGRESS)


# ---------------------------------------------------------------------------
# TRAINING ASSIGNMENTS
# ---------------------------------------------------------------------------


class TrainingAssignment(Base):
    __tablename__ = "training_assignments"
    __table_args__ = (
        Index("idx_training_assignments_user_status", "user_id", "status"),
        Index("idx_training_assignments_status_due", "status", "due_date"),
        Index("idx_training_assignments_kpi", "kpi_record_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    training_type = Column(
        SAEnum(TrainingType, name="training_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    assigned_by = Column(
        SAEnum(AssignedBy, name="training_assigned_by_enum", native_enum=False),
        nullable=False,
        default=AssignedBy.KPI_TRIGGER,
    )
    assigned_by_user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    due_date = Column(DateTime(timezone=True), nullable=False)

    status = Column(
        SAEnum(TrainingStatus, name="training_status_enum", native_enum=False),
        nullable=False,
        default=TrainingStatus.ASSIGNED,
        index=True,
    )
    started_at = Column(DateTime(timezone=True), nullable=True)
    completion_date = Column(DateTime(timezone=True), nullable=True)
    score = Column(Integer, nullable=True)

    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # Null for manual assignments.
    kpi_record_id = Column(
        String(36),
        ForeignKey("kpi_records.id", ondelete="SET NULL"),
        nullable=True,
    )
    idempotency_key = Column(String(255), nullable=True, unique=True)

    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status not in OPEN_STATUSES or self.due_date is None:
            return False
        return _aware(self.due_date) < (now or _utcnow())

    @property
    def effective_status(self) -> TrainingStatus:
        if self.is_overdue():
            return TrainingStatus.OVERDUE
        return self.status

    def __repr__(self) -> str:
        return f"<TrainingAssignment id={self.id} user={self.user_id} type={self.training_type} status={self.status}>"
