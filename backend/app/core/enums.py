# backend/app/core/enums.py
"""
Core enums for the TutorBook backend.

Roles are supplied by the identity provider; booking, recurring rule and
payment enums are persisted as their string values.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles an authenticated principal may carry."""

    ADMIN = "admin"
    TUTOR = "tutor"
    STUDENT = "student"


class BookingType(str, Enum):
    FREE = "free"
    PAID = "paid"


class BookingStatus(str, Enum):
    """Booking lifecycle states."""

    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PROCESSING_PAYMENT = "processing_payment"
    CONFIRMED = "confirmed"
    AWAITING_RESCHEDULE = "awaiting_reschedule"
    COMPLETED = "completed"
    CANCELED = "canceled"
    REJECTED = "rejected"


class BookingEventType(str, Enum):
    CREATED = "created"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    RESCHEDULED = "rescheduled"
    CANCELED = "canceled"
    COMPLETED = "completed"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"


class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday == 0)."""
        return list(DayOfWeek).index(self)


class RecurringRuleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELED = "canceled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    REFUNDED = "refunded"


# Statuses that occupy a time slot and count as "in flight"
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING,
    BookingStatus.AWAITING_RESCHEDULE,
    BookingStatus.AWAITING_PAYMENT,
    BookingStatus.PROCESSING_PAYMENT,
    BookingStatus.CONFIRMED,
)

TERMINAL_BOOKING_STATUSES = (
    BookingStatus.COMPLETED,
    BookingStatus.CANCELED,
    BookingStatus.REJECTED,
)
