# backend/tests/helpers.py
"""Shared constants and builders for the booking tests."""

from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy.orm import Session

from app.auth import create_access_token, create_service_token
from app.core.enums import BookingEventType, BookingStatus, BookingType, RoleName
from app.core.timezone_utils import utc_now_ms
from app.models.booking import Booking
from app.models.user import User
from app.principal import SCOPE_BOOKING_JOBS, SCOPE_PAYMENT_WEBHOOK, ServicePrincipal, UserPrincipal
from app.schemas.booking import BookingCreate
from app.services.booking_service import BookingService


def utc_ms(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=timezone.utc).timestamp() * 1000)


MINUTE = 60_000
HOUR = 60 * MINUTE
# Monday 19 October 2026, 11:00 BST. Clocks go back on Sunday 25 October.
NOW = utc_ms(2026, 10, 19, 10, 0)
# Tuesday 20 October 2026, 14:00 BST
TUESDAY_1300_UTC = utc_ms(2026, 10, 20, 13, 0)
# Monday 26 October 2026, 14:00 GMT
NEXT_MONDAY_1400_UTC = utc_ms(2026, 10, 26, 14, 0)

JOBS = ServicePrincipal(client_id="test-jobs", scopes=(SCOPE_BOOKING_JOBS,))
WEBHOOK = ServicePrincipal(client_id="test-webhook", scopes=(SCOPE_PAYMENT_WEBHOOK,))


def principal_for(user: User) -> UserPrincipal:
    return UserPrincipal(user_id=user.id, role=RoleName(user.role))


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


def service_headers(*scopes: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_service_token('test-service', scopes)}"}


def book(
    db: Session,
    actor: User,
    counterpart: User,
    timestamp: int = TUESDAY_1300_UTC,
    booking_type: BookingType = BookingType.FREE,
    now_ms: Optional[int] = NOW,
) -> Booking:
    data = BookingCreate(counterpart_id=counterpart.id, timestamp=timestamp, booking_type=booking_type)
    return BookingService(db).create_booking(principal_for(actor), data, now_ms=now_ms)


def confirmed_free(db: Session, student: User, tutor: User, timestamp: int = TUESDAY_1300_UTC) -> Booking:
    booking = book(db, student, tutor, timestamp)
    return BookingService(db).accept_booking(principal_for(tutor), booking.id, now_ms=NOW)


def completed_free(db: Session, student: User, tutor: User, timestamp: int = TUESDAY_1300_UTC) -> Booking:
    booking = confirmed_free(db, student, tutor, timestamp)
    return BookingService(db).complete_booking(principal_for(tutor), booking.id, now_ms=timestamp + 15 * MINUTE)


def insert_booking(
    db: Session,
    student: User,
    tutor: User,
    timestamp: int,
    booking_type: BookingType = BookingType.FREE,
    status: BookingStatus = BookingStatus.CONFIRMED,
) -> Booking:
    """Insert a booking in any status without walking the state machine."""
    booking = Booking(
        from_user_id=student.id,
        to_user_id=tutor.id,
        timestamp=timestamp,
        booking_type=booking_type.value,
        status=status.value,
        created_at=NOW,
    )
    booking.add_event(BookingEventType.CREATED, student.id, NOW, {"scheduled_time": timestamp})
    db.add(booking)
    db.commit()
    return booking


def future_ms(days: int = 7, hours: int = 0) -> int:
    """A whole hour comfortably ahead of the wall clock, for tests that go through HTTP."""
    return (utc_now_ms() // HOUR + days * 24 + hours) * HOUR
