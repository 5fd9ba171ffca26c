from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import NotificationStatus, NotificationTemplate


class NotificationLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    last_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    recipient: str
    recipient_role: Optional[str] = None
    subject: str
    template_type: NotificationTemplate
    status: NotificationStatus
    error: Optional[str] = None
    retry_count: int
    max_retries: int
    can_retry: bool
    context_json: Optional[dict] = None
    user_id: Optional[str] = None
    kpi_record_id: Optional[str] = None
    training_assignment_id: Optional[str] = None
    audit_schedule_id: Optional[str] = None


class RetryFailedRequest(BaseModel):
    template_type: Optional[NotificationTemplate] = None
    kpi_record_id: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=1000)


class RetryFailedResult(BaseModel):
    retried: int
    sent: int
    failed: int
    results: List[Dict[str, Any]]


class NotificationStats(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_template: Dict[str, int]
    retryable: int
    exhausted: int
