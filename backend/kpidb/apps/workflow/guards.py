from __future__ import annotations

from typing import Any, Dict, List

from sqlalchemy.orm import Session

GuardResult = List[Dict[str, str]]


def _get_value(obj: Any, key: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def guard_training_score(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    score = _get_value(after_obj, "score")
    if score is None:
        return []
    if score < 0 or score > 100:
        return [{"field": "score", "reason": "score must be between 0 and 100"}]
    return []


def guard_audit_findings(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    findings = _get_value(after_obj, "findings")
    if not findings or not str(findings).strip():
        return [{"field": "findings", "reason": "findings required"}]
    return []


def guard_notification_retry_budget(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    retry_count = _get_value(before_obj, "retry_count") or 0
    max_retries = _get_value(before_obj, "max_retries") or 0
    if retry_count >= max_retries:
        return [{"field": "retry_count", "reason": "retry budget exhausted"}]
    return []


def guard_automation_error(
    db: Session,
    *,
    before_obj: Any,
    after_obj: Any,
    from_state: str,
    to_state: str,
) -> GuardResult:
    if not _get_value(after_obj, "error"):
        return [{"field": "automation_error", "reason": "failure reason required"}]
    return []
