# backend/app/models/message.py
"""
Message model for the booking chat.

Messages are tied to bookings and enable communication between the tutor
and the student.
"""

import ulid
from sqlalchemy import BigInteger, Column, ForeignKey, Index, String
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON as SAJSON

from ..database import Base


class Message(Base):
    """
    Message model for booking-related chat.

    ``read_by`` holds the ids of users who have seen the message; the sender
    is always in it.
    """

    __tablename__ = "messages"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    text = Column(String(1000), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    read_by = Column(MutableList.as_mutable(SAJSON), nullable=False, default=list)

    booking = relationship("Booking", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])

    __table_args__ = (Index("ix_messages_booking_timestamp", "booking_id", "timestamp"),)

    def is_read_by(self, user_id: str) -> bool:
        return user_id in (self.read_by or [])
