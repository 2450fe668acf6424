# backend/app/repositories/payment_repository.py
"""
Payment Repository for the TutorBook backend.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(db, Payment)

    def get_by_session_id(self, stripe_session_id: str) -> Optional[Payment]:
        return self.find_one_by(stripe_session_id=stripe_session_id)

    def get_for_booking(self, booking_id: str) -> List[Payment]:
        """Payments for a booking, newest first."""
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.booking_id == booking_id)
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting payments for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payments: {str(e)}")

    def get_latest_for_booking(self, booking_id: str) -> Optional[Payment]:
        payments = self.get_for_booking(booking_id)
        return payments[0] if payments else None
