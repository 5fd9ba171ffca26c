from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db

from . import models, schemas, service


router = APIRouter(prefix="/notification-logs", tags=["notifications"])


@router.get("", response_model=List[schemas.NotificationLogRead])
def list_notification_logs(
    status: Optional[models.NotificationStatus] = None,
    template_type: Optional[models.NotificationTemplate] = None,
    recipient: Optional[str] = None,
    kpi_record_id: Optional[str] = None,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_read_db),
):
    return service.list_logs(
        db,
        status=status,
        template_type=template_type,
        recipient=recipient,
        kpi_record_id=kpi_record_id,
        start=start,
        end=end,
        limit=limit,
    )


@router.get("/stats", response_model=schemas.NotificationStats)
def get_notification_stats(db: Session = Depends(get_read_db)):
    return service.notification_stats(db)


@router.post("/retry-failed", response_model=schemas.RetryFailedResult)
def retry_failed(
    payload: Optional[schemas.RetryFailedRequest] = None,
    db: Session = Depends(get_db),
):
    payload = payload or schemas.RetryFailedRequest()
    summary = service.retry_failed_notifications(
        db,
        template_type=payload.template_type,
        kpi_record_id=payload.kpi_record_id,
        limit=payload.limit,
    )
    db.commit()
    return summary


@router.post("/{log_id}/retry", response_model=schemas.NotificationLogRead)
def retry_notification(log_id: str, db: Session = Depends(get_db)):
    log = service.get_log_or_404(db, log_id)
    service.retry_notification(db, log)
    db.commit()
    db.refresh(log)
    return log
