# backend/kpidb/apps/training/schemas.py

from __future__ import annotations

from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import AssignedBy, TrainingStatus, TrainingType


# ---------------------------------------------------------------------------
# TRAINING ASSIGNMENTS
# ---------------------------------------------------------------------------


class TrainingAssignmentManualCreate(BaseModel):
    """
    Manual assignment by a coordinator or trainer.

    Manual assignments never point back at a KPI record.
    """

    user_id: str
    training_type: TrainingType
    due_date: datetime = Field(..., description="When the training must be completed by.")
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    assigned_by_user_id: Optional[str] = None


class TrainingCompletion(BaseModel):
    score: Optional[int] = Field(None, ge=0, le=100)
    notes: Optional[str] = None


class TrainingAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    training_type: TrainingType
    assigned_by: AssignedBy
    assigned_by_user_id: Optional[str] = None
    assigned_at: datetime
    due_date: datetime
    status: TrainingStatus
    effective_status: TrainingStatus
    started_at: Optional[datetime] = None
    completion_date: Optional[datetime] = None
    score: Optional[int] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    kpi_record_id: Optional[str] = None
    is_active: bool
    created_at: datetime


class TrainingStats(BaseModel):
    total: int
    overdue: int
    by_status: Dict[str, int]
    by_type: Dict[str, int]
    average_score: Optional[float] = None
