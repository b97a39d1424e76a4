# backend/rentals/repositories/activity_log_repository.py
"""Activity log writes and per-entity reads."""

from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.activity_log import ActivityLog
from .base_repository import BaseRepository


class ActivityLogRepository(BaseRepository[ActivityLog]):
    def __init__(self, db: Session):
        super().__init__(db, ActivityLog)

    def list_for_entity(self, entity_type: str, entity_id: str) -> List[ActivityLog]:
        """Entries for one entity in the order they were written."""
        try:
            return (
                self.db.query(ActivityLog)
                .filter(ActivityLog.entity_type == entity_type, ActivityLog.entity_id == entity_id)
                .order_by(ActivityLog.created_at.asc(), ActivityLog.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing activity for {entity_type}:{entity_id}: {str(e)}")
            raise RepositoryException(f"Failed to list activity: {str(e)}")
