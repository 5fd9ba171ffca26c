# backend/kpidb/apps/kpi/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from ..accounts import services as account_services
from . import schemas, services

router = APIRouter(prefix="/kpi", tags=["kpi"])


@router.post(
    "",
    response_model=schemas.KPIRecordRead,
    status_code=status.HTTP_201_CREATED,
    summary="Submit monthly KPI percentages and run automation",
)
def submit_kpi(
    payload: schemas.KPISubmit,
    submitted_by: Optional[str] = Query(None, description="User id of the submitter."),
    db: Session = Depends(get_db),
):
    record = services.submit_kpi(db, payload, submitted_by=submitted_by)
    db.commit()
    db.refresh(record)
    return record


@router.post("/preview", response_model=schemas.KPIPreview)
def preview_kpi(payload: schemas.KPIPercentages):
    return services.preview(payload)


@router.get("/pending-automation", response_model=List[schemas.AutomationStatusRead])
def list_pending_automation(
    include_failed: bool = True,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_read_db),
):
    return services.list_pending_automation(db, include_failed=include_failed, limit=limit)


@router.get("/stats/overview", response_model=schemas.KPIStats)
def get_kpi_stats(period: Optional[str] = None, db: Session = Depends(get_read_db)):
    return services.kpi_stats(db, period=period)


@router.get("/alerts/low-performers", response_model=List[schemas.KPIRecordRead])
def list_low_performers(
    period: Optional[str] = None,
    threshold: Optional[int] = Query(None, ge=0, le=100),
    db: Session = Depends(get_read_db),
):
    return services.list_low_performers(db, period=period, threshold=threshold)


@router.get("/users/{user_id}", response_model=List[schemas.KPIRecordRead])
def list_user_records(
    user_id: str,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
):
    account_services.get_user_or_404(db, user_id)
    return services.list_for_user(db, user_id, include_inactive=include_inactive)


@router.get("/{kpi_record_id}", response_model=schemas.KPIRecordRead)
def get_record(kpi_record_id: str, db: Session = Depends(get_read_db)):
    return services.get_record_or_404(db, kpi_record_id)


@router.post("/{kpi_record_id}/reprocess", response_model=schemas.ReprocessResult)
def reprocess_record(kpi_record_id: str, db: Session = Depends(get_db)):
    record, result = services.reprocess(db, kpi_record_id)
    db.commit()
    db.refresh(record)
    return {"record": record, "automation": result.as_dict()}


@router.get("/{kpi_record_id}/automation-status", response_model=schemas.AutomationStatusRead)
def get_automation_status(kpi_record_id: str, db: Session = Depends(get_read_db)):
    return services.get_record_or_404(db, kpi_record_id)


@router.get("/{kpi_record_id}/triggers", response_model=schemas.TriggerSummary)
def get_triggers(kpi_record_id: str, db: Session = Depends(get_read_db)):
    record = services.get_record_or_404(db, kpi_record_id)
    return services.trigger_summary(record)


@router.delete("/{kpi_record_id}", response_model=schemas.KPIRecordRead)
def deactivate_record(kpi_record_id: str, db: Session = Depends(get_db)):
    record = services.deactivate(db, kpi_record_id)
    db.commit()
    db.refresh(record)
    return record
