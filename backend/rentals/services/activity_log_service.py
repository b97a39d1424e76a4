# backend/rentals/services/activity_log_service.py
"""
Activity log writer.

Entries are added to the caller's open transaction so an action and its audit
row commit or roll back together.
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.activity_log import ActivityLog
from ..repositories.factory import RepositoryFactory
from .base import BaseService

ENTITY_BOOKING = "BOOKING"


class ActivityLogService(BaseService):
    def __init__(self, db: Session):
        super().__init__(db)
        self.repository = RepositoryFactory.create_activity_log_repository(db)

    def record(
        self,
        *,
        user_id: Optional[str],
        action: str,
        entity_type: str,
        entity_id: str,
        details: Optional[str] = None,
    ) -> ActivityLog:
        """Append an entry. Does not commit."""
        entry = self.repository.create(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        self.logger.debug(
            "Activity recorded",
            extra={"action": action, "entity_type": entity_type, "entity_id": entity_id},
        )
        return entry

    def entries_for(self, entity_type: str, entity_id: str) -> List[ActivityLog]:
        return self.repository.list_for_entity(entity_type, entity_id)
