from __future__ import annotations

from datetime import datetime, timezone
import enum
import os

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7

NOTIFICATION_MAX_RETRIES = int(os.getenv("NOTIFICATION_MAX_RETRIES", "3"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationTemplate(str, enum.Enum):
    KPI_NOTIFICATION = "KPI_NOTIFICATION"
    TRAINING_ASSIGNMENT = "TRAINING_ASSIGNMENT"
    AUDIT_NOTIFICATION = "AUDIT_NOTIFICATION"
    WARNING_LETTER = "WARNING_LETTER"
    TRAINING_COMPLETION = "TRAINING_COMPLETION"
    AUDIT_COMPLETION = "AUDIT_COMPLETION"


class NotificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    FAILED = "FAILED"


class NotificationLog(Base):
    __tablename__ = "notification_logs"
    __table_args__ = (
        Index("ix_notification_logs_status_retry", "status", "retry_count"),
        Index("ix_notification_logs_template_created", "template_type", "created_at"),
        Index("ix_notification_logs_recipient", "recipient"),
        Index("ix_notification_logs_kpi", "kpi_record_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    last_attempt_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)

    recipient = Column(String(255), nullable=False)
    recipient_role = Column(String(32), nullable=True)
    subject = Column(String(255), nullable=False)
    template_type = Column(
        SAEnum(NotificationTemplate, name="notification_template_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    context_json = Column(JSON, nullable=True)

    status = Column(
        SAEnum(NotificationStatus, name="notification_status_enum", native_enum=False),
        nullable=False,
        default=NotificationStatus.PENDING,
        index=True,
    )
    error = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=NOTIFICATION_MAX_RETRIES)

    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    kpi_record_id = Column(String(36), ForeignKey("kpi_records.id", ondelete="SET NULL"), nullable=True)
    training_assignment_id = Column(
        String(36),
        ForeignKey("training_assignments.id", ondelete="SET NULL"),
        nullable=True,
    )
    audit_schedule_id = Column(
        String(36),
        ForeignKey("audit_schedules.id", ondelete="SET NULL"),
        nullable=True,
    )

    idempotency_key = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def can_retry(self) -> bool:
        return self.status == NotificationStatus.FAILED and (self.retry_count or 0) < (self.max_retries or 0)

    def __repr__(self) -> str:
        return f"<NotificationLog id={self.id} recipient={self.recipient} status={self.status}>"
