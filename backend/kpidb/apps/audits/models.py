from __future__ import annotations

from datetime import datetime, timezone
import enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    String,
    Text,
)

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AuditType(str, enum.Enum):
    AUDIT_CALL = "AUDIT_CALL"
    CROSS_CHECK = "CROSS_CHECK"
    DUMMY_AUDIT = "DUMMY_AUDIT"
    CROSS_VERIFY_INSUFF = "CROSS_VERIFY_INSUFF"
    RCA_COMPLAINTS = "RCA_COMPLAINTS"


class AuditStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ScheduledBy(str, enum.Enum):
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"
    KPI_TRIGGER = "KPI_TRIGGER"


class AuditPriority(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ComplianceStatus(str, enum.Enum):
    COMPLIANT = "COMPLIANT"
    NON_COMPLIANT = "NON_COMPLIANT"
    PARTIALLY_COMPLIANT = "PARTIALLY_COMPLIANT"
    PENDING_REVIEW = "PENDING_REVIEW"


class AuditSchedule(Base):
    """
    A scheduled audit of one user.

    Overdue is derived at read time (still SCHEDULED after the scheduled
    date); it is never stored.
    """

    __tablename__ = "audit_schedules"
    __table_args__ = (
        Index("ix_audit_schedules_user_status", "user_id", "status"),
        Index("ix_audit_schedules_status_date", "status", "scheduled_date"),
        Index("ix_audit_schedules_kpi", "kpi_record_id"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    audit_type = Column(
        SAEnum(AuditType, name="audit_type_enum", native_enum=False),
        nullable=False,
        index=True,
    )
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        SAEnum(AuditStatus, name="audit_status_enum", native_enum=False),
        nullable=False,
        default=AuditStatus.SCHEDULED,
        index=True,
    )
    scheduled_by = Column(
        SAEnum(ScheduledBy, name="audit_scheduled_by_enum", native_enum=False),
        nullable=False,
        default=ScheduledBy.KPI_TRIGGER,
    )
    priority = Column(
        SAEnum(AuditPriority, name="audit_priority_enum", native_enum=False),
        nullable=False,
        default=AuditPriority.MEDIUM,
        index=True,
    )

    audit_scope = Column(Text, nullable=True)
    audit_method = Column(String(255), nullable=True)
    assigned_to_user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_date = Column(DateTime(timezone=True), nullable=True)
    findings = Column(Text, nullable=True)
    recommendations = Column(Text, nullable=True)
    risk_level = Column(SAEnum(RiskLevel, name="audit_risk_level_enum", native_enum=False), nullable=True)
    compliance_status = Column(
        SAEnum(ComplianceStatus, name="audit_compliance_status_enum", native_enum=False),
        nullable=True,
    )

    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(DateTime(timezone=True), nullable=True)
    follow_up_notes = Column(Text, nullable=True)

    kpi_record_id = Column(String(36), ForeignKey("kpi_records.id", ondelete="SET NULL"), nullable=True)
    idempotency_key = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status != AuditStatus.SCHEDULED or self.scheduled_date is None:
            return False
        return _aware(self.scheduled_date) < (now or _utcnow())

    def __repr__(self) -> str:
        return f"<AuditSchedule id={self.id} user={self.user_id} type={self.audit_type} status={self.status}>"
