"""Session length per booking type."""

from __future__ import annotations

from typing import Union

from ..core.enums import BookingType

FREE_SESSION_MINUTES = 15
PAID_SESSION_MINUTES = 60

_MINUTES_BY_TYPE = {
    BookingType.FREE: FREE_SESSION_MINUTES,
    BookingType.PAID: PAID_SESSION_MINUTES,
}


def duration_minutes(booking_type: Union[BookingType, str]) -> int:
    return _MINUTES_BY_TYPE[BookingType(booking_type)]


def duration_ms(booking_type: Union[BookingType, str]) -> int:
    return duration_minutes(booking_type) * 60_000


def end_time(start_ms: int, booking_type: Union[BookingType, str]) -> int:
    """End of the half-open ``[start, end)`` session interval."""
    return start_ms + duration_ms(booking_type)


def intervals_overlap(start_a: int, end_a: int, start_b: int, end_b: int) -> bool:
    """Half-open overlap: touching intervals do not overlap."""
    return start_a < end_b and end_a > start_b
