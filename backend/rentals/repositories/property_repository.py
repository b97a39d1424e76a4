# backend/rentals/repositories/property_repository.py
"""Read access to listings owned by the content store."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models.property import Property
from .base_repository import BaseRepository


class PropertyRepository(BaseRepository[Property]):
    def __init__(self, db: Session):
        super().__init__(db, Property)

    def count_for_manager(self, manager_id: Optional[str]) -> int:
        """Number of listings a manager owns; ``None`` counts every listing."""
        if manager_id is None:
            return self.count()
        return self.count(manager_id=manager_id)
