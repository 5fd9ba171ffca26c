from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import (
    AuditPriority,
    AuditStatus,
    AuditType,
    ComplianceStatus,
    RiskLevel,
    ScheduledBy,
)


class AuditScheduleManualCreate(BaseModel):
    user_id: str
    audit_type: AuditType
    scheduled_date: datetime
    priority: AuditPriority = AuditPriority.MEDIUM
    audit_scope: Optional[str] = None
    assigned_to_user_id: Optional[str] = None


class AuditStart(BaseModel):
    assigned_to_user_id: Optional[str] = None


class AuditCompletion(BaseModel):
    findings: str = Field(..., min_length=1)
    recommendations: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    compliance_status: Optional[ComplianceStatus] = None


class AuditFollowUp(BaseModel):
    follow_up_date: datetime
    notes: Optional[str] = None


class AuditScheduleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    audit_type: AuditType
    scheduled_date: datetime
    status: AuditStatus
    scheduled_by: ScheduledBy
    priority: AuditPriority
    audit_scope: Optional[str] = None
    audit_method: Optional[str] = None
    assigned_to_user_id: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_date: Optional[datetime] = None
    findings: Optional[str] = None
    recommendations: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    compliance_status: Optional[ComplianceStatus] = None
    follow_up_required: bool
    follow_up_date: Optional[datetime] = None
    follow_up_notes: Optional[str] = None
    kpi_record_id: Optional[str] = None
    is_active: bool
    created_at: datetime


class AuditStats(BaseModel):
    total: int
    overdue: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    by_priority: Dict[str, int]
