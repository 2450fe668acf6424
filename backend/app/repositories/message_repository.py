# backend/app/repositories/message_repository.py
"""
Message Repository for the TutorBook backend.
"""

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.message import Message
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class MessageRepository(BaseRepository[Message]):
    def __init__(self, db: Session):
        super().__init__(db, Message)

    def get_for_booking(self, booking_id: str) -> List[Message]:
        """Messages for a booking in send order."""
        try:
            return (
                self.db.query(Message)
                .filter(Message.booking_id == booking_id)
                .order_by(Message.timestamp, Message.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting messages for booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get messages: {str(e)}")

    def count_unread(self, booking_id: str, user_id: str) -> int:
        # read_by is JSON; membership is checked in Python for dialect portability
        return sum(1 for m in self.get_for_booking(booking_id) if not m.is_read_by(user_id))
