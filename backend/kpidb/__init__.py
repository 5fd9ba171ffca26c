# backend/kpidb/__init__.py
"""
KPI scoring and automation backend.

Importing the package registers every app's ORM models on ``Base.metadata``
so Alembic and ``create_all()`` see all tables. The model classes live in
kpidb/apps/*/models.py.
"""

from .apps.accounts import models as accounts_models          # users
from .apps.lifecycle import models as lifecycle_models        # user timeline
from .apps.kpi import models as kpi_models                    # KPI records
from .apps.training import models as training_models          # training assignments
from .apps.audits import models as audits_models              # audit schedules
from .apps.notifications import models as notifications_models  # notification logs

__all__ = [
    "accounts_models",
    "lifecycle_models",
    "kpi_models",
    "training_models",
    "audits_models",
    "notifications_models",
]
