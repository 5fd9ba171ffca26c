from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parent
sys.path.append(str(ROOT))

os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["DATABASE_WRITE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("NOTIFICATIONS_PROVIDER", "noop")

from kpidb.database import Base, configure_sqlite_engine  # noqa: E402
from kpidb.apps.accounts import models as account_models  # noqa: E402
from kpidb.apps.lifecycle import models as lifecycle_models  # noqa: E402
from kpidb.apps.kpi import models as kpi_models  # noqa: E402
from kpidb.apps.training import models as training_models  # noqa: E402
from kpidb.apps.audits import models as audit_models  # noqa: E402
from kpidb.apps.notifications import models as notification_models  # noqa: E402


@pytest.fixture()
def db_session():
    engine = configure_sqlite_engine(create_engine("sqlite+pysqlite:///:memory:"))
    Base.metadata.create_all(
        bind=engine,
        tables=[
            account_models.User.__table__,
            lifecycle_models.LifecycleEvent.__table__,
            kpi_models.KPIRecord.__table__,
            training_models.TrainingAssignment.__table__,
            audit_models.AuditSchedule.__table__,
            notification_models.NotificationLog.__table__,
        ],
    )
    TestingSession = sessionmaker(
        bind=engine,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(
        role: account_models.UserRole = account_models.UserRole.FIELD_EXECUTIVE,
        *,
        email: str | None = None,
        is_active: bool = True,
    ) -> account_models.User:
        counter["n"] += 1
        n = counter["n"]
        user = account_models.User(
            employee_id=f"EMP-{n:04d}",
            email=email or f"{role.value.lower()}{n}@example.com",
            full_name=f"{role.value.title()} {n}",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user
