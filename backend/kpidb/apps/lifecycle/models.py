from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, String, Text, desc

from ...database import Base
from ...utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleEvent(Base):
    """
    Append-only per-user trail of KPI, training, audit and standing events.
    """

    __tablename__ = "lifecycle_events"
    __table_args__ = (
        Index("ix_lifecycle_events_user_time", "user_id", desc("occurred_at")),
        Index("ix_lifecycle_events_entity", "entity_type", "entity_id"),
        Index("ix_lifecycle_events_user_category", "user_id", "category"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    event_type = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, default="system", index=True)
    entity_type = Column(String(64), nullable=True)
    entity_id = Column(String(64), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    occurred_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self) -> str:
        return f"<LifecycleEvent id={self.id} user={self.user_id} type={self.event_type}>"
