# backend/app/services/message_service.py
"""
Message Service for booking chat.

Handles business logic for the messaging system including:
- Message creation and validation
- Access control (booking participants only)
- Read receipts and unread counts
"""

from dataclasses import dataclass
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ValidationException
from ..core.timezone_utils import utc_now_ms
from ..models.message import Message
from ..principal import UserPrincipal
from ..repositories.factory import RepositoryFactory
from ..repositories.message_repository import MessageRepository
from .base import BaseService
from .booking_service import BookingService

logger = logging.getLogger(__name__)


@dataclass
class MarkReadResult:
    """Result of marking a booking's messages as read."""

    count: int
    marked_message_ids: List[str]


class MessageService(BaseService):
    """
    Service for managing chat messages attached to bookings.

    Both participants may read and write; nobody else may.
    """

    def __init__(self, db: Session, booking_service: Optional[BookingService] = None):
        """Initialize message service."""
        super().__init__(db)
        self.repository: MessageRepository = RepositoryFactory.create_message_repository(db)
        self.booking_service = booking_service or BookingService(db)

    def _ensure_access(self, principal: UserPrincipal, booking_id: str) -> None:
        booking = self.booking_service._get_booking_or_raise(booking_id)
        self.booking_service._ensure_participant(booking, principal)

    @staticmethod
    def clean_text(text: Optional[str]) -> str:
        cleaned = (text or "").strip()
        if not cleaned:
            raise ValidationException("Message cannot be empty", code="EMPTY_MESSAGE")
        if len(cleaned) > settings.max_message_length:
            raise ValidationException(
                f"Message is too long (max {settings.max_message_length} characters)",
                code="MESSAGE_TOO_LONG",
            )
        return cleaned

    @BaseService.measure_operation("send_message")
    def send_message(
        self,
        principal: UserPrincipal,
        booking_id: str,
        text: str,
        now_ms: Optional[int] = None,
    ) -> Message:
        """
        Send a message in a booking's chat.

        Args:
            principal: Sender, a participant of the booking
            booking_id: Booking the chat belongs to
            text: Message body; surrounding whitespace is trimmed

        Returns:
            Created message, already read by its sender
        """
        cleaned = self.clean_text(text)
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            self._ensure_access(principal, booking_id)
            message = self.repository.create(
                booking_id=booking_id,
                sender_id=principal.user_id,
                text=cleaned,
                timestamp=now,
                read_by=[principal.user_id],
            )
        self.logger.info(f"Message {message.id} sent in booking {booking_id}")
        return message

    @BaseService.measure_operation("get_booking_messages")
    def get_messages(self, principal: UserPrincipal, booking_id: str) -> List[Message]:
        self._ensure_access(principal, booking_id)
        return self.repository.get_for_booking(booking_id)

    @BaseService.measure_operation("mark_messages_read")
    def mark_as_read(self, principal: UserPrincipal, booking_id: str) -> MarkReadResult:
        """Add the caller to ``read_by`` on every message they have not seen."""
        with self.transaction():
            self._ensure_access(principal, booking_id)
            marked: List[str] = []
            for message in self.repository.get_for_booking(booking_id):
                if not message.is_read_by(principal.user_id):
                    message.read_by.append(principal.user_id)
                    marked.append(message.id)
        return MarkReadResult(count=len(marked), marked_message_ids=marked)

    def get_unread_count(self, principal: UserPrincipal, booking_id: str) -> int:
        self._ensure_access(principal, booking_id)
        return self.repository.count_unread(booking_id, principal.user_id)
