# backend/rentals/models/activity_log.py
"""Append-only audit rows for state-changing actions."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.sql import func
import ulid

from ..database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    # Null for system actions such as a payment callback without a session.
    user_id = Column(String(26), ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(32), nullable=False)
    entity_id = Column(String(64), nullable=False)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("ix_activity_logs_entity", "entity_type", "entity_id"),)

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} {self.entity_type}:{self.entity_id}>"
