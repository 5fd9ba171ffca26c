from __future__ import annotations

from .guards import (
    guard_audit_findings,
    guard_automation_error,
    guard_notification_retry_budget,
    guard_training_score,
)

WORKFLOWS = {
    "kpi_automation": {
        "transitions": {
            "PENDING": {
                "PROCESSING": [],
            },
            "PROCESSING": {
                "COMPLETED": [],
                "FAILED": [guard_automation_error],
            },
            # Reprocessing; side effects are keyed so re-runs do not duplicate.
            "FAILED": {
                "PROCESSING": [],
            },
            "COMPLETED": {
                "PROCESSING": [],
            },
        }
    },
    "training_assignment": {
        "transitions": {
            "ASSIGNED": {
                "IN_PROGRESS": [],
                "COMPLETED": [guard_training_score],
            },
            "IN_PROGRESS": {
                "COMPLETED": [guard_training_score],
            },
            "COMPLETED": {},
        }
    },
    "audit_schedule": {
        "transitions": {
            "SCHEDULED": {
                "IN_PROGRESS": [],
                "COMPLETED": [guard_audit_findings],
            },
            "IN_PROGRESS": {
                "COMPLETED": [guard_audit_findings],
            },
            "COMPLETED": {},
        }
    },
    "notification_log": {
        "transitions": {
            "PENDING": {
                "SENT": [],
                "FAILED": [],
            },
            "FAILED": {
                "PENDING": [guard_notification_retry_budget],
            },
            "SENT": {},
        }
    },
}
