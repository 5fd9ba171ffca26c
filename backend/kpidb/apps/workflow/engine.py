from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..lifecycle import services as lifecycle_services

from .registry import WORKFLOWS


@dataclass
class TransitionError(Exception):
    code: str
    detail: List[Dict[str, str]]


def _state(value: Any) -> str:
    return getattr(value, "value", value)


def _extract_user_id(before_obj: Any, after_obj: Any) -> Optional[str]:
    for obj in (after_obj, before_obj):
        if isinstance(obj, dict) and obj.get("user_id"):
            return obj.get("user_id")
        user_id = getattr(obj, "user_id", None)
        if user_id:
            return user_id
    return None


def check_transition(
    db: Session,
    *,
    entity_type: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any = None,
    after_obj: Any = None,
) -> None:
    """Raise TransitionError unless the move is registered and every guard passes."""
    from_state = _state(from_state)
    to_state = _state(to_state)

    workflow = WORKFLOWS.get(entity_type)
    if not workflow:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "entity_type", "reason": f"No workflow registered for {entity_type}"}],
        )

    transitions = workflow.get("transitions", {})
    allowed = transitions.get(from_state, {})
    guards = allowed.get(to_state)

    if guards is None:
        raise TransitionError(
            code="invalid_transition",
            detail=[{"field": "status", "reason": f"Cannot transition from {from_state} to {to_state}"}],
        )

    failures: List[Dict[str, str]] = []
    for guard in guards:
        failures.extend(
            guard(
                db,
                before_obj=before_obj,
                after_obj=after_obj,
                from_state=from_state,
                to_state=to_state,
            )
        )

    if failures:
        raise TransitionError(code="missing_requirements", detail=failures)


def apply_transition(
    db: Session,
    *,
    entity_type: str,
    entity_id: str,
    from_state: Any,
    to_state: Any,
    before_obj: Any = None,
    after_obj: Any = None,
    user_id: Optional[str] = None,
    critical: bool = False,
) -> None:
    from_state = _state(from_state)
    to_state = _state(to_state)

    check_transition(
        db,
        entity_type=entity_type,
        from_state=from_state,
        to_state=to_state,
        before_obj=before_obj,
        after_obj=after_obj,
    )

    after_payload: Dict[str, Any] = {"from": from_state, "to": to_state}
    if isinstance(after_obj, dict):
        after_payload.update({k: v for k, v in after_obj.items() if k != "user_id"})

    lifecycle_services.log_event(
        db,
        user_id=user_id or _extract_user_id(before_obj, after_obj),
        event_type=f"{entity_type}.{to_state.lower()}",
        title=f"{entity_type} {from_state} -> {to_state}",
        category="workflow",
        entity_type=entity_type,
        entity_id=entity_id,
        metadata=after_payload,
        critical=critical,
    )
