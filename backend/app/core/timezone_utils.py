# backend/app/core/timezone_utils.py
"""
Timezone utilities for the TutorBook backend.

All stored instants are UTC epoch milliseconds. User-facing calendar days and
wall-clock times are UK local (Europe/London); every conversion between the
two goes through this module so DST offsets are resolved in one place.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Tuple

import pytz

from .config import settings


def get_uk_timezone() -> pytz.BaseTzInfo:
    return pytz.timezone(settings.uk_timezone)


def utc_now_ms() -> int:
    """Current instant as UTC epoch milliseconds."""
    return to_epoch_ms(datetime.now(timezone.utc))


def to_epoch_ms(dt: datetime) -> int:
    """
    Convert a datetime to UTC epoch milliseconds.

    Naive datetimes are assumed to be UTC.
    """
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return int(round(dt.timestamp() * 1000))


def from_epoch_ms(ms: int) -> datetime:
    """UTC-aware datetime for an epoch-millisecond instant."""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def uk_local_to_utc_ms(day: date, hour: int, minute: int = 0) -> int:
    """
    Convert a UK wall-clock time on ``day`` to a UTC instant.

    pytz ``localize`` picks the offset in force on that date, so GMT/BST
    changes are handled per call. Non-existent spring-forward times are
    shifted forward by ``normalize``.
    """
    uk_tz = get_uk_timezone()
    naive = datetime(day.year, day.month, day.day) + timedelta(hours=hour, minutes=minute)
    try:
        local = uk_tz.localize(naive, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        local = uk_tz.localize(naive, is_dst=False)
    except pytz.exceptions.NonExistentTimeError:
        local = uk_tz.normalize(uk_tz.localize(naive, is_dst=False))
    return to_epoch_ms(local)


def to_uk_local(ms: int) -> datetime:
    return from_epoch_ms(ms).astimezone(get_uk_timezone())


def uk_today(now_ms: Optional[int] = None) -> date:
    """Today's date in the UK."""
    return to_uk_local(utc_now_ms() if now_ms is None else now_ms).date()


def format_uk_time(ms: int) -> str:
    """``HH:MM`` wall-clock time in the UK."""
    return to_uk_local(ms).strftime("%H:%M")


def format_uk_datetime(ms: int) -> str:
    """
    Long UK rendering used in user-facing messages.

    Example: ``Tuesday 20 October 2026 at 14:00``
    """
    local = to_uk_local(ms)
    return f"{local.strftime('%A')} {local.day} {local.strftime('%B %Y')} at {local.strftime('%H:%M')}"


def week_start_utc(ms: int) -> int:
    """Monday 00:00 UTC of the ISO week containing ``ms``."""
    dt = from_epoch_ms(ms)
    monday = dt.date() - timedelta(days=dt.weekday())
    return to_epoch_ms(datetime(monday.year, monday.month, monday.day, tzinfo=timezone.utc))


def utc_weekday_hour_minute(ms: int) -> Tuple[int, int, int]:
    """(weekday, hour, minute) of an instant in UTC, Monday == 0."""
    dt = from_epoch_ms(ms)
    return dt.weekday(), dt.hour, dt.minute


def parse_uk_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` UK-local calendar date."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()
