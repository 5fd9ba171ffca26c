"""
Per-tag provisioning helpers shared by the training, audit and
notification factories.

Each side-effect row carries an idempotency key. ``provision_once`` looks the
key up first, then inserts inside a SAVEPOINT so that a failed insert only
rolls back its own tag.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    created: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def ids(self) -> List[str]:
        return [*self.created, *self.reused]

    def as_dict(self) -> dict:
        return {"created": list(self.created), "reused": list(self.reused), "errors": list(self.errors)}


def find_by_key(db: Session, model: Any, key: str) -> Optional[Any]:
    return db.query(model).filter(model.idempotency_key == key).first()


def provision_once(
    db: Session,
    result: FanOutResult,
    *,
    model: Any,
    key: str,
    factory: str,
    tag: str,
    build: Callable[[], Any],
) -> Optional[Any]:
    """
    Return the row for ``key``, creating it with ``build()`` if needed.

    Database errors are recorded on ``result`` and swallowed; anything else
    propagates to the caller.
    """
    existing = find_by_key(db, model, key)
    if existing is not None:
        result.reused.append(existing.id)
        return existing

    try:
        with db.begin_nested():
            obj = build()
            obj.idempotency_key = key
            db.add(obj)
            db.flush()
    except IntegrityError as exc:
        # Lost a race against another run for the same key.
        existing = find_by_key(db, model, key)
        if existing is not None:
            result.reused.append(existing.id)
            return existing
        _record_error(result, factory=factory, tag=tag, key=key, exc=exc)
        return None
    except SQLAlchemyError as exc:
        _record_error(result, factory=factory, tag=tag, key=key, exc=exc)
        return None

    result.created.append(obj.id)
    return obj


def _record_error(result: FanOutResult, *, factory: str, tag: str, key: str, exc: Exception) -> None:
    logger.warning(
        "KPI side effect could not be provisioned",
        extra={"factory": factory, "tag": tag, "idempotency_key": key, "error": str(exc)},
    )
    result.errors.append({"factory": factory, "tag": tag, "error": str(exc)})
