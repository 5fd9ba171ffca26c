"""
KPI automation run.

One run takes a persisted KPIRecord through
PENDING/FAILED/COMPLETED -> PROCESSING -> COMPLETED | FAILED:

1. evaluate the trigger rules once;
2. fan out to training assignments, audit schedules and notifications,
   each stage and each tag in its own SAVEPOINT;
3. record a single terminal status.

Failed side-effect inserts and failed deliveries stay local to their tag
(see ``AutomationResult.errors`` and the FAILED notification logs). Only an
evaluator error or an unexpected exception marks the record FAILED; an
unexpected exception rolls back its own stage and keeps the others, so a
reprocess only fills in what is missing.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from ..audits import services as audit_services
from ..lifecycle import models as lifecycle_models
from ..lifecycle import services as lifecycle_services
from ..notifications import service as notification_service
from ..training import services as training_services
from ..workflow import apply_transition

from . import models
from .fanout import FanOutResult
from .triggers import ActionTag, evaluate_triggers

logger = logging.getLogger(__name__)

Evaluator = Callable[[Mapping[str, float], int], List[ActionTag]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class AutomationResult:
    kpi_record_id: str
    status: str = models.AutomationStatus.PENDING.value
    triggered_actions: List[str] = field(default_factory=list)
    training: FanOutResult = field(default_factory=FanOutResult)
    audits: FanOutResult = field(default_factory=FanOutResult)
    notifications: FanOutResult = field(default_factory=FanOutResult)
    error: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def success(self) -> bool:
        return self.status == models.AutomationStatus.COMPLETED.value

    @property
    def errors(self) -> List[Dict[str, str]]:
        return [*self.training.errors, *self.audits.errors, *self.notifications.errors]

    def as_dict(self) -> dict:
        return {
            "kpi_record_id": self.kpi_record_id,
            "status": self.status,
            "success": self.success,
            "triggered_actions": list(self.triggered_actions),
            "training": self.training.as_dict(),
            "audits": self.audits.as_dict(),
            "notifications": self.notifications.as_dict(),
            "errors": self.errors,
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
        }


# ---------------------------------------------------------------------------
# STATUS TRANSITIONS
# ---------------------------------------------------------------------------


def _move(db: Session, record: models.KPIRecord, to_state: models.AutomationStatus, after: dict) -> None:
    apply_transition(
        db,
        entity_type="kpi_automation",
        entity_id=record.id,
        from_state=record.automation_status,
        to_state=to_state,
        after_obj=after,
        user_id=record.user_id,
        critical=True,
    )
    record.automation_status = to_state
    record.processed_at = _utcnow()


def mark_processing(db: Session, record: models.KPIRecord) -> models.KPIRecord:
    """Raises TransitionError when another run already holds the record."""
    _move(
        db,
        record,
        models.AutomationStatus.PROCESSING,
        {"attempt": (record.automation_attempts or 0) + 1},
    )
    record.automation_attempts = (record.automation_attempts or 0) + 1
    record.automation_error = None
    db.add(record)
    db.flush()
    return record


def mark_completed(db: Session, record: models.KPIRecord) -> models.KPIRecord:
    _move(db, record, models.AutomationStatus.COMPLETED, {})
    db.add(record)
    db.flush()
    return record


def mark_failed(db: Session, record: models.KPIRecord, error: str) -> models.KPIRecord:
    _move(db, record, models.AutomationStatus.FAILED, {"error": error})
    record.automation_error = error
    db.add(record)
    db.flush()
    return record


# ---------------------------------------------------------------------------
# RUN
# ---------------------------------------------------------------------------


def _log_once(
    db: Session,
    record: models.KPIRecord,
    *,
    event_type: str,
    title: str,
    description: str,
    category: str,
) -> None:
    exists = (
        db.query(lifecycle_models.LifecycleEvent.id)
        .filter(
            lifecycle_models.LifecycleEvent.entity_type == "kpi_record",
            lifecycle_models.LifecycleEvent.entity_id == record.id,
            lifecycle_models.LifecycleEvent.event_type == event_type,
        )
        .first()
    )
    if exists:
        return
    lifecycle_services.log_event(
        db,
        user_id=record.user_id,
        event_type=event_type,
        title=title,
        description=description,
        category=category,
        entity_type="kpi_record",
        entity_id=record.id,
    )


STAGES = (
    ("training", training_services, "provision_for_kpi"),
    ("audits", audit_services, "provision_for_kpi"),
    ("notifications", notification_service, "notify_for_kpi"),
)


def _fan_out(db: Session, record: models.KPIRecord, tags: List[str], result: AutomationResult) -> List[str]:
    """Run each factory in its own SAVEPOINT and return the stage failures."""
    failures = []
    for name, module, factory in STAGES:
        try:
            with db.begin_nested():
                setattr(result, name, getattr(module, factory)(db, record=record, tags=tags))
        except Exception as exc:
            logger.exception(
                "KPI automation stage failed",
                extra={"kpi_record_id": record.id, "stage": name},
            )
            setattr(result, name, FanOutResult())
            failures.append(str(exc) or exc.__class__.__name__)

    if ActionTag.WARNING_LETTER.value in tags:
        _log_once(
            db,
            record,
            event_type="warning",
            title="Performance Warning Issued",
            description=f"Warning issued due to KPI score: {record.overall_score}%",
            category="negative",
        )
    if ActionTag.REWARD.value in tags:
        _log_once(
            db,
            record,
            event_type="reward",
            title="Performance Reward Eligible",
            description=f"KPI score {record.overall_score}% qualifies for recognition",
            category="positive",
        )
    return failures


def run_automation(
    db: Session,
    record: models.KPIRecord,
    *,
    evaluator: Evaluator = evaluate_triggers,
) -> AutomationResult:
    """
    Run (or re-run) automation for ``record``.

    Side effects are keyed by record, factory and tag, so a re-run reuses
    what earlier runs created. The caller commits.
    """
    started = time.perf_counter()
    result = AutomationResult(kpi_record_id=record.id)

    mark_processing(db, record)
    logger.info(
        "KPI automation started",
        extra={"kpi_record_id": record.id, "attempt": record.automation_attempts},
    )

    try:
        tags = [ActionTag(tag).value for tag in evaluator(record.percentages(), record.overall_score)]
    except Exception as exc:
        logger.exception("KPI trigger evaluation failed", extra={"kpi_record_id": record.id})
        result.error = f"Trigger evaluation failed: {exc}"
        mark_failed(db, record, result.error)
        return _finish(db, record, result, started)

    record.triggered_actions = list(dict.fromkeys(tags))
    result.triggered_actions = list(record.triggered_actions)
    db.add(record)
    db.flush()

    failures = _fan_out(db, record, result.triggered_actions, result)
    if failures:
        result.error = "Automation failed: " + "; ".join(failures)
        mark_failed(db, record, result.error)
        return _finish(db, record, result, started)

    mark_completed(db, record)
    return _finish(db, record, result, started)


def _finish(
    db: Session,
    record: models.KPIRecord,
    result: AutomationResult,
    started: float,
) -> AutomationResult:
    result.status = record.automation_status.value
    result.elapsed_ms = int((time.perf_counter() - started) * 1000)
    db.expire(record, ["training_assignments", "audit_schedules", "notification_logs"])
    logger.info(
        "KPI automation finished",
        extra={
            "kpi_record_id": record.id,
            "status": result.status,
            "elapsed_ms": result.elapsed_ms,
            "tag_errors": len(result.errors),
        },
    )
    return result
