from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from . import models, schemas, services

router = APIRouter(prefix="/audit-schedules", tags=["audits"])


@router.get("/scheduled", response_model=List[schemas.AuditScheduleRead])
def list_scheduled(
    user_id: Optional[str] = None,
    audit_type: Optional[models.AuditType] = None,
    db: Session = Depends(get_read_db),
):
    return services.list_scheduled(db, user_id=user_id, audit_type=audit_type)


@router.get("/overdue", response_model=List[schemas.AuditScheduleRead])
def list_overdue(db: Session = Depends(get_read_db)):
    return services.list_overdue(db)


@router.get("/upcoming", response_model=List[schemas.AuditScheduleRead])
def list_upcoming(
    days: int = Query(services.UPCOMING_WINDOW_DAYS, ge=1, le=90),
    db: Session = Depends(get_read_db),
):
    return services.list_upcoming(db, days=days)


@router.get("/stats", response_model=schemas.AuditStats)
def get_stats(db: Session = Depends(get_read_db)):
    return services.audit_stats(db)


@router.get("/{schedule_id}", response_model=schemas.AuditScheduleRead)
def get_schedule(schedule_id: str, db: Session = Depends(get_read_db)):
    return services.get_schedule_or_404(db, schedule_id)


@router.post(
    "/manual",
    response_model=schemas.AuditScheduleRead,
    status_code=status.HTTP_201_CREATED,
)
def manual_schedule(payload: schemas.AuditScheduleManualCreate, db: Session = Depends(get_db)):
    schedule = services.manual_schedule(db, payload)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.put("/{schedule_id}/start", response_model=schemas.AuditScheduleRead)
def start_audit(
    schedule_id: str,
    payload: Optional[schemas.AuditStart] = None,
    db: Session = Depends(get_db),
):
    schedule = services.mark_in_progress(
        db,
        schedule_id,
        assigned_to=payload.assigned_to_user_id if payload else None,
    )
    db.commit()
    db.refresh(schedule)
    return schedule


@router.put("/{schedule_id}/complete", response_model=schemas.AuditScheduleRead)
def complete_audit(
    schedule_id: str,
    payload: schemas.AuditCompletion,
    db: Session = Depends(get_db),
):
    schedule = services.complete_audit(
        db,
        schedule_id,
        payload.findings,
        recommendations=payload.recommendations,
        risk_level=payload.risk_level,
        compliance_status=payload.compliance_status,
    )
    db.commit()
    db.refresh(schedule)
    return schedule


@router.put("/{schedule_id}/follow-up", response_model=schemas.AuditScheduleRead)
def set_follow_up(
    schedule_id: str,
    payload: schemas.AuditFollowUp,
    db: Session = Depends(get_db),
):
    schedule = services.set_follow_up(db, schedule_id, payload.follow_up_date, notes=payload.notes)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.delete("/{schedule_id}", response_model=schemas.AuditScheduleRead)
def deactivate_schedule(schedule_id: str, db: Session = Depends(get_db)):
    schedule = services.deactivate(db, schedule_id)
    db.commit()
    db.refresh(schedule)
    return schedule
