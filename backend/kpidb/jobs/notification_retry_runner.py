"""Failed notification retry runner.

Intended for cron (e.g. every 15 minutes). Each eligible log is retried in
its own savepoint; logs that used up their retry budget are left alone.
"""

from __future__ import annotations

from kpidb.database import WriteSessionLocal
from kpidb.apps.notifications import service as notification_service


def run(limit: int | None = None) -> dict:
    db = WriteSessionLocal()
    try:
        summary = notification_service.retry_failed_notifications(db, limit=limit)
        db.commit()
        return {key: value for key, value in summary.items() if key != "results"}
    finally:
        db.close()


if __name__ == "__main__":
    result = run()
    print("Notification retry runner completed:", result)
