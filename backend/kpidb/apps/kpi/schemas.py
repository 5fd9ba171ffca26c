from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import AutomationStatus
from .scoring import Rating

PERIOD_PATTERN = re.compile(r"^\d{4}-\d{2}$")


class KPIPercentages(BaseModel):
    """Raw sub-metric values for one period."""

    tat: float = Field(..., ge=0, le=100)
    major_negativity: float = Field(..., ge=0, le=10)
    quality: float = Field(..., ge=0, le=100)
    neighbor_check: float = Field(..., ge=0, le=100)
    negativity: float = Field(..., ge=0, le=100)
    app_usage: float = Field(..., ge=0, le=100)
    insufficiency: float = Field(..., ge=0, le=10)


class KPISubmit(KPIPercentages):
    user_id: str
    period: str = Field(..., description="Reporting month as YYYY-MM.")
    comments: Optional[str] = Field(None, max_length=500)

    @field_validator("period")
    @classmethod
    def _validate_period(cls, value: str) -> str:
        value = value.strip()
        if not PERIOD_PATTERN.match(value):
            raise ValueError("period must look like YYYY-MM")
        month = int(value[5:])
        if month < 1 or month > 12:
            raise ValueError("period month must be between 01 and 12")
        return value


class KPIPreview(BaseModel):
    scores: Dict[str, int]
    overall_score: int
    rating: Rating
    triggered_actions: List[str]
    improvement_areas: List[str]


class KPIRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    period: str

    tat_percentage: float
    tat_score: int
    major_negativity_percentage: float
    major_negativity_score: int
    quality_percentage: float
    quality_score: int
    neighbor_check_percentage: float
    neighbor_check_score: int
    negativity_percentage: float
    negativity_score: int
    app_usage_percentage: float
    app_usage_score: int
    insufficiency_percentage: float
    insufficiency_score: int

    overall_score: int
    rating: Rating
    triggered_actions: List[str] = []

    automation_status: AutomationStatus
    processed_at: Optional[datetime] = None
    automation_error: Optional[str] = None
    automation_attempts: int

    training_assignment_ids: List[str] = []
    audit_schedule_ids: List[str] = []
    notification_log_ids: List[str] = []

    submitted_by: Optional[str] = None
    comments: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class AutomationStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    automation_status: AutomationStatus
    processed_at: Optional[datetime] = None
    automation_error: Optional[str] = None
    automation_attempts: int
    triggered_actions: List[str] = []
    training_assignment_ids: List[str] = []
    audit_schedule_ids: List[str] = []
    notification_log_ids: List[str] = []


class TriggerSummary(BaseModel):
    kpi_record_id: str
    overall_score: int
    rating: Rating
    triggered_actions: List[str]
    training_tags: List[str]
    audit_tags: List[str]
    notification_templates: List[str]


class ReprocessResult(BaseModel):
    record: KPIRecordRead
    automation: Dict[str, Any]


class KPIStats(BaseModel):
    total: int
    average_score: Optional[float] = None
    by_rating: Dict[str, int]
    by_automation_status: Dict[str, int]
    low_performers: int
