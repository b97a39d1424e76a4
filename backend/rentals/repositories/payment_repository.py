# backend/rentals/repositories/payment_repository.py
"""
Payment attempt repository.

References are unique, so lookups and status changes key on them.
"""

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import PaymentAttempt, PaymentAttemptStatus
from .base_repository import BaseRepository


class PaymentAttemptRepository(BaseRepository[PaymentAttempt]):
    def __init__(self, db: Session):
        super().__init__(db, PaymentAttempt)

    def get_by_reference(self, reference: str) -> Optional[PaymentAttempt]:
        """Load an attempt with its current row state; transitions bypass the session."""
        try:
            return (
                self.db.query(PaymentAttempt)
                .populate_existing()
                .filter(PaymentAttempt.reference == reference)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading payment attempt {reference}: {str(e)}")
            raise RepositoryException(f"Failed to retrieve payment attempt: {str(e)}")

    def transition(
        self,
        reference: str,
        from_statuses: Iterable[PaymentAttemptStatus],
        to_status: PaymentAttemptStatus,
        *,
        failure_reason: Optional[str] = None,
        verified_at: Optional[datetime] = None,
    ) -> bool:
        """Conditionally move an attempt to ``to_status``; True when a row changed."""
        values: dict = {"status": to_status.value, "failure_reason": failure_reason}
        if verified_at is not None:
            values["verified_at"] = verified_at
        try:
            result = self.db.execute(
                update(PaymentAttempt)
                .where(
                    PaymentAttempt.reference == reference,
                    PaymentAttempt.status.in_([s.value for s in from_statuses]),
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1
        except SQLAlchemyError as e:
            self.logger.error(f"Error updating payment attempt {reference}: {str(e)}")
            raise RepositoryException(f"Failed to update payment attempt: {str(e)}")
