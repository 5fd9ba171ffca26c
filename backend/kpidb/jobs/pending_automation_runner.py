"""KPI automation catch-up runner.

Picks up records still PENDING (or FAILED, with --include-failed) and runs
automation for each one in its own transaction, so one bad record does not
hold back the rest. Safe to run from cron.
"""

from __future__ import annotations

import argparse
import logging

from kpidb.database import WriteSessionLocal
from kpidb.apps.kpi import automation
from kpidb.apps.kpi import services as kpi_services
from kpidb.apps.workflow import TransitionError

logger = logging.getLogger(__name__)


def run(*, include_failed: bool = False, limit: int = 50) -> dict:
    db = WriteSessionLocal()
    summary = {"processed": 0, "completed": 0, "failed": 0, "skipped": 0}
    try:
        record_ids = [
            record.id
            for record in kpi_services.list_pending_automation(
                db, include_failed=include_failed, limit=limit
            )
        ]
        for record_id in record_ids:
            record = kpi_services.get_record_or_404(db, record_id)
            try:
                result = automation.run_automation(db, record)
            except TransitionError as exc:
                db.rollback()
                summary["skipped"] += 1
                logger.warning(
                    "Skipped KPI record",
                    extra={"kpi_record_id": record_id, "reason": exc.detail},
                )
                continue
            db.commit()
            summary["processed"] += 1
            summary["completed" if result.success else "failed"] += 1
        return summary
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run KPI automation for pending records.")
    parser.add_argument("--include-failed", action="store_true")
    parser.add_argument("--limit", type=int, default=50)
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO)
    result = run(include_failed=args.include_failed, limit=args.limit)
    print("KPI automation runner completed:", result)
