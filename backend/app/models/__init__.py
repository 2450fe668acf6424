"""
Database models for the TutorBook backend.

- User: students, tutors and admins
- Booking / BookingEvent: sessions and their append-only audit trail
- RecurringRule: weekly reservations materialized into bookings
- Payment: checkout sessions for paid bookings
- Message: booking chat
"""

from .booking import Booking, BookingEvent
from .message import Message
from .payment import Payment
from .recurring_rule import RecurringRule
from .user import User

__all__ = [
    "Booking",
    "BookingEvent",
    "Message",
    "Payment",
    "RecurringRule",
    "User",
]
