# backend/app/services/conflict_checker.py
"""
Conflict Checker Service for the TutorBook backend.

Validates a proposed session time for a student/tutor pair:
- recurring-rule reservations (exact UTC day/hour/minute match)
- overlap with either party's slot-occupying bookings, half-open [start, end)
- the past-time guard

All arithmetic is in UTC epoch milliseconds; only error messages render UK
local time.
"""

import logging
from typing import List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from ..core.enums import BookingType, DayOfWeek
from ..core.exceptions import (
    BookingConflictException,
    PastBookingTimeException,
    RecurringSlotConflictException,
)
from ..core.timezone_utils import format_uk_datetime, utc_now_ms, utc_weekday_hour_minute
from ..domain.booking_durations import end_time, intervals_overlap
from ..models.booking import Booking
from ..models.recurring_rule import RecurringRule
from ..repositories import RepositoryFactory
from ..repositories.conflict_checker_repository import ConflictCheckerRepository
from .base import BaseService

logger = logging.getLogger(__name__)

YOU = "You"
OTHER_USER = "The other user"


def whose_busy(acting_user_id: str, booking_or_rule: Union[Booking, RecurringRule]) -> str:
    """Label a blocking booking or rule from the acting user's point of view."""
    return YOU if booking_or_rule.involves(acting_user_id) else OTHER_USER


def rule_matches_start(rule: RecurringRule, start_ms: int) -> bool:
    weekday, hour, minute = utc_weekday_hour_minute(start_ms)
    return (
        rule.day_of_week == list(DayOfWeek)[weekday].value
        and rule.hour_utc == hour
        and rule.minute_utc == minute
    )


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts and time validation.

    Centralizes conflict detection so creation, rescheduling, slot
    generation and the recurring materializer apply identical rules.
    """

    def __init__(self, db: Session, repository: Optional[ConflictCheckerRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional ConflictCheckerRepository instance
        """
        super().__init__(db)
        self.logger = logging.getLogger(__name__)
        self.repository = repository or RepositoryFactory.create_conflict_checker_repository(db)

    def find_recurring_conflict(
        self,
        start_ms: int,
        user_ids: Sequence[str],
        rules: Optional[List[RecurringRule]] = None,
    ) -> Optional[RecurringRule]:
        """First active rule touching ``user_ids`` whose schedule equals the start instant."""
        if rules is None:
            rules = self.repository.get_active_recurring_rules_for_users(user_ids)
        for rule in rules:
            if rule_matches_start(rule, start_ms):
                return rule
        return None

    def find_overlapping_bookings(
        self,
        start_ms: int,
        end_ms: int,
        user_ids: Sequence[str],
        exclude_booking_id: Optional[str] = None,
        bookings: Optional[List[Booking]] = None,
    ) -> List[Booking]:
        """
        Slot-occupying bookings of ``user_ids`` overlapping ``[start_ms, end_ms)``.

        Each existing booking's interval uses its own type's duration.
        """
        if bookings is None:
            bookings = self.repository.get_active_bookings_for_users(
                user_ids,
                exclude_booking_id=exclude_booking_id,
                window_start=start_ms,
                window_end=end_ms,
            )
        return [
            booking
            for booking in bookings
            if booking.id != exclude_booking_id
            and intervals_overlap(start_ms, end_ms, booking.timestamp, booking.end_timestamp)
        ]

    @BaseService.measure_operation("validate_booking_time")
    def validate_booking_time(
        self,
        *,
        start_ms: int,
        booking_type: Union[BookingType, str],
        from_user_id: str,
        to_user_id: str,
        acting_user_id: str,
        exclude_booking_id: Optional[str] = None,
        skip_recurring_check: bool = False,
        now_ms: Optional[int] = None,
    ) -> None:
        """
        Raise if the proposed session cannot be booked.

        Args:
            start_ms: Proposed start, UTC epoch ms
            booking_type: Determines the proposed end
            from_user_id: Student
            to_user_id: Tutor
            acting_user_id: Whose perspective conflict messages take
            exclude_booking_id: Booking being rescheduled
            skip_recurring_check: Set by the recurring materializer for its own bookings
            now_ms: Current instant; defaults to the wall clock

        Raises:
            RecurringSlotConflictException: Start lands on an active rule's slot
            BookingConflictException: Overlaps an active booking of either party
            PastBookingTimeException: Start is not in the future
        """
        user_ids = [from_user_id, to_user_id]
        end_ms = end_time(start_ms, booking_type)

        if not skip_recurring_check:
            rule = self.find_recurring_conflict(start_ms, user_ids)
            if rule is not None:
                self.logger.info(f"Start {start_ms} collides with recurring rule {rule.id}")
                raise RecurringSlotConflictException(
                    rule.day_of_week, rule.hour_utc, rule.minute_utc, rule.id
                )

        overlapping = self.find_overlapping_bookings(
            start_ms, end_ms, user_ids, exclude_booking_id=exclude_booking_id
        )
        if overlapping:
            existing = overlapping[0]
            conflict_user = whose_busy(acting_user_id, existing)
            raise BookingConflictException(
                message=(
                    f"{conflict_user} already have a booking at this time. "
                    f"Existing booking: {format_uk_datetime(existing.timestamp)}. "
                    "Please choose a different time."
                ),
                details={
                    "conflicting_booking_id": existing.id,
                    "conflicting_start": existing.timestamp,
                    "conflicting_end": existing.end_timestamp,
                    "conflict_user": conflict_user,
                },
            )

        now = utc_now_ms() if now_ms is None else now_ms
        if start_ms <= now:
            raise PastBookingTimeException()
