# backend/rentals/repositories/user_repository.py
"""Read access to accounts owned by the identity provider."""

from sqlalchemy.orm import Session

from ..models.user import User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)
