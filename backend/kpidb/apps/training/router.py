# backend/kpidb/apps/training/router.py

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...database import get_db, get_read_db
from . import schemas, services

router = APIRouter(prefix="/training-assignments", tags=["training"])


@router.get(
    "/pending",
    response_model=List[schemas.TrainingAssignmentRead],
    summary="Assigned or in-progress trainings",
)
def list_pending(user_id: Optional[str] = None, db: Session = Depends(get_read_db)):
    return services.list_pending(db, user_id=user_id)


@router.get(
    "/overdue",
    response_model=List[schemas.TrainingAssignmentRead],
    summary="Open trainings past their due date",
)
def list_overdue(db: Session = Depends(get_read_db)):
    return services.list_overdue(db)


@router.get("/stats", response_model=schemas.TrainingStats)
def get_stats(db: Session = Depends(get_read_db)):
    return services.training_stats(db)


@router.get("/{assignment_id}", response_model=schemas.TrainingAssignmentRead)
def get_assignment(assignment_id: str, db: Session = Depends(get_read_db)):
    return services.get_assignment_or_404(db, assignment_id)


@router.post(
    "/manual",
    response_model=schemas.TrainingAssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def manual_assign(
    payload: schemas.TrainingAssignmentManualCreate,
    db: Session = Depends(get_db),
):
    assignment = services.manual_assign(db, payload)
    db.commit()
    db.refresh(assignment)
    return assignment


@router.put("/{assignment_id}/start", response_model=schemas.TrainingAssignmentRead)
def start_training(assignment_id: str, db: Session = Depends(get_db)):
    assignment = services.mark_in_progress(db, assignment_id)
    db.commit()
    db.refresh(assignment)
    return assignment


@router.put("/{assignment_id}/complete", response_model=schemas.TrainingAssignmentRead)
def complete_training(
    assignment_id: str,
    payload: schemas.TrainingCompletion,
    db: Session = Depends(get_db),
):
    assignment = services.complete_training(
        db,
        assignment_id,
        score=payload.score,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/{assignment_id}", response_model=schemas.TrainingAssignmentRead)
def deactivate_assignment(assignment_id: str, db: Session = Depends(get_db)):
    assignment = services.deactivate(db, assignment_id)
    db.commit()
    db.refresh(assignment)
    return assignment
