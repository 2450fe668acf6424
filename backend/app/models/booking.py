# backend/app/models/booking.py
"""
Booking model for the TutorBook backend.

A booking is a session between one student (``from_user_id``) and one tutor
(``to_user_id``) starting at ``timestamp`` (UTC epoch milliseconds). Its
history lives in ``booking_events``: an append-only list ordered by
``sequence`` that is written in the same transaction as every status change.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import BookingEventType, BookingStatus, BookingType
from ..database import Base
from ..domain.booking_durations import end_time

logger = logging.getLogger(__name__)


def _in_clause(values: Any) -> str:
    return ", ".join(f"'{v.value}'" for v in values)


class Booking(Base):
    """
    Booking between a student and a tutor.

    Attributes:
        from_user_id: Student
        to_user_id: Tutor
        timestamp: Session start, UTC epoch ms (changes on reschedule)
        booking_type: free or paid, fixed at creation
        status: Lifecycle status
        last_action_by_user_id: Actor of the most recent event
        recurring_rule_id: Rule that materialized this booking, if any
        created_at: Creation instant, UTC epoch ms
    """

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    from_user_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    to_user_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    booking_type = Column(String(10), nullable=False)
    status = Column(String(30), nullable=False, default=BookingStatus.PENDING.value)
    last_action_by_user_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    recurring_rule_id = Column(
        String(26), ForeignKey("recurring_rules.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(BigInteger, nullable=False)

    student = relationship("User", foreign_keys=[from_user_id], back_populates="bookings_as_student")
    tutor = relationship("User", foreign_keys=[to_user_id], back_populates="bookings_as_tutor")
    events = relationship(
        "BookingEvent",
        back_populates="booking",
        order_by="BookingEvent.sequence",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    messages = relationship("Message", back_populates="booking", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="booking", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_bookings_from_to_type_status", "from_user_id", "to_user_id", "booking_type", "status"),
        Index("ix_bookings_to_from_type_status", "to_user_id", "from_user_id", "booking_type", "status"),
        Index("ix_bookings_status_timestamp", "status", "timestamp"),
        CheckConstraint(f"booking_type IN ({_in_clause(BookingType)})", name="ck_bookings_type"),
        CheckConstraint(f"status IN ({_in_clause(BookingStatus)})", name="ck_bookings_status"),
        CheckConstraint("from_user_id <> to_user_id", name="ck_bookings_distinct_parties"),
    )

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: student={self.from_user_id}, tutor={self.to_user_id}, "
            f"timestamp={self.timestamp}, type={self.booking_type}, status={self.status}>"
        )

    @property
    def end_timestamp(self) -> int:
        return end_time(self.timestamp, self.booking_type)

    def involves(self, user_id: str) -> bool:
        return user_id in (self.from_user_id, self.to_user_id)

    def add_event(
        self,
        event_type: BookingEventType,
        user_id: str,
        timestamp: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "BookingEvent":
        """Append an audit event and record its actor as the last actor."""
        event = BookingEvent(
            sequence=len(self.events),
            timestamp=timestamp,
            user_id=user_id,
            type=event_type.value,
            event_metadata=dict(metadata or {}),
        )
        self.events.append(event)
        self.last_action_by_user_id = user_id
        logger.info(f"Booking {self.id}: {event_type.value} by user {user_id}")
        return event


class BookingEvent(Base):
    """
    One immutable entry of a booking's audit trail.

    Rows are only ever inserted through ``Booking.add_event``.
    """

    __tablename__ = "booking_events"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    timestamp = Column(BigInteger, nullable=False)
    user_id = Column(String(26), ForeignKey("users.id"), nullable=False)
    type = Column(String(30), nullable=False)
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)

    booking = relationship("Booking", back_populates="events")

    __table_args__ = (
        UniqueConstraint("booking_id", "sequence", name="uq_booking_events_sequence"),
        CheckConstraint(f"type IN ({_in_clause(BookingEventType)})", name="ck_booking_events_type"),
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "type": self.type,
            "metadata": dict(self.event_metadata or {}),
        }

    def __repr__(self) -> str:
        return f"<BookingEvent {self.booking_id}#{self.sequence}: {self.type} by {self.user_id}>"
