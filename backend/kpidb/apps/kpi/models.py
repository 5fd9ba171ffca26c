from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ...database import Base
from ...utils.identifiers import generate_uuid7
from .scoring import Rating


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AutomationStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class KPIRecord(Base):
    """
    One KPI submission for a user and a ``YYYY-MM`` period.

    Scores, rating and triggered actions are derived once at creation.
    Automation fields are only written by ``automation.run_automation``.
    """

    __tablename__ = "kpi_records"
    __table_args__ = (
        UniqueConstraint("user_id", "period", name="uq_kpi_records_user_period"),
        Index("ix_kpi_records_status_created", "automation_status", "created_at"),
        Index("ix_kpi_records_period_score", "period", "overall_score"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    period = Column(String(7), nullable=False, index=True)

    tat_percentage = Column(Float, nullable=False)
    tat_score = Column(Integer, nullable=False)
    major_negativity_percentage = Column(Float, nullable=False)
    major_negativity_score = Column(Integer, nullable=False)
    quality_percentage = Column(Float, nullable=False)
    quality_score = Column(Integer, nullable=False)
    neighbor_check_percentage = Column(Float, nullable=False)
    neighbor_check_score = Column(Integer, nullable=False)
    negativity_percentage = Column(Float, nullable=False)
    negativity_score = Column(Integer, nullable=False)
    app_usage_percentage = Column(Float, nullable=False)
    app_usage_score = Column(Integer, nullable=False)
    insufficiency_percentage = Column(Float, nullable=False)
    insufficiency_score = Column(Integer, nullable=False)

    overall_score = Column(Integer, nullable=False, index=True)
    rating = Column(
        SAEnum(Rating, name="kpi_rating_enum", native_enum=False, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    triggered_actions = Column(JSON, nullable=False, default=list)

    automation_status = Column(
        SAEnum(AutomationStatus, name="kpi_automation_status_enum", native_enum=False),
        nullable=False,
        default=AutomationStatus.PENDING,
        index=True,
    )
    processed_at = Column(DateTime(timezone=True), nullable=True)
    automation_error = Column(Text, nullable=True)
    automation_attempts = Column(Integer, nullable=False, default=0)

    submitted_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    comments = Column(String(500), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    training_assignments = relationship("TrainingAssignment", viewonly=True)
    audit_schedules = relationship("AuditSchedule", viewonly=True)
    notification_logs = relationship("NotificationLog", viewonly=True)

    @property
    def training_assignment_ids(self) -> list:
        return [item.id for item in self.training_assignments]

    @property
    def audit_schedule_ids(self) -> list:
        return [item.id for item in self.audit_schedules]

    @property
    def notification_log_ids(self) -> list:
        return [item.id for item in self.notification_logs]

    def percentages(self) -> dict:
        return {
            "tat": self.tat_percentage,
            "major_negativity": self.major_negativity_percentage,
            "quality": self.quality_percentage,
            "neighbor_check": self.neighbor_check_percentage,
            "negativity": self.negativity_percentage,
            "app_usage": self.app_usage_percentage,
            "insufficiency": self.insufficiency_percentage,
        }

    def scores(self) -> dict:
        return {
            "tat": self.tat_score,
            "major_negativity": self.major_negativity_score,
            "quality": self.quality_score,
            "neighbor_check": self.neighbor_check_score,
            "negativity": self.negativity_score,
            "app_usage": self.app_usage_score,
            "insufficiency": self.insufficiency_score,
        }

    def __repr__(self) -> str:
        return f"<KPIRecord id={self.id} user={self.user_id} period={self.period} score={self.overall_score}>"
