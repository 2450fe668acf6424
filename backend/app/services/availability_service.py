# backend/app/services/availability_service.py
"""
Availability Service for the TutorBook backend.

Generates bookable start times for one UK-local calendar day and a
student/tutor pair. Candidates are spaced ``slot_interval_minutes`` apart
across working hours (UK local); each is converted to UTC on its own so a
DST change never shifts the grid.
"""

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import BookingType
from ..core.timezone_utils import format_uk_time, uk_local_to_utc_ms, uk_today, utc_now_ms
from ..domain.booking_durations import duration_minutes, end_time
from ..models.recurring_rule import RecurringRule
from .base import BaseService
from .booking_eligibility_service import BookingEligibilityService
from .conflict_checker import ConflictChecker, whose_busy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BusySlot:
    start: str
    end: str
    whose_busy: str


@dataclass
class DayAvailability:
    available_slots: List[str] = field(default_factory=list)
    busy_slots: List[BusySlot] = field(default_factory=list)


class AvailabilityService(BaseService):
    """Slot generation on top of ConflictChecker's overlap and recurring rules."""

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        eligibility_service: Optional[BookingEligibilityService] = None,
    ):
        super().__init__(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.eligibility_service = eligibility_service or BookingEligibilityService(db)

    def _rule_busy_slot(self, rule: RecurringRule, start_ms: int, acting_user_id: str) -> BusySlot:
        """A rule blocks the session its next occurrence would be booked as."""
        booking_type = self.eligibility_service.recurring_booking_type(rule.from_user_id, rule.to_user_id)
        return BusySlot(
            start=format_uk_time(start_ms),
            end=format_uk_time(end_time(start_ms, booking_type)),
            whose_busy=whose_busy(acting_user_id, rule),
        )

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        *,
        day: date,
        from_user_id: str,
        to_user_id: str,
        booking_type: Union[BookingType, str],
        acting_user_id: str,
        exclude_booking_id: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> DayAvailability:
        """
        Bookable ``HH:MM`` start times (UK local) and what blocks the rest.

        Args:
            day: UK-local calendar date
            from_user_id: Student
            to_user_id: Tutor
            booking_type: Session length to fit
            acting_user_id: Whose perspective busy labels take
            exclude_booking_id: Booking being rescheduled, ignored as a blocker
            now_ms: Current instant; defaults to the wall clock

        Returns:
            DayAvailability with one busy entry per blocking booking or rule
        """
        now = utc_now_ms() if now_ms is None else now_ms
        is_today = uk_today(now) == day
        session_minutes = duration_minutes(booking_type)
        day_start_minutes = settings.working_hours_start * 60
        day_end_minutes = settings.working_hours_end * 60
        user_ids = [from_user_id, to_user_id]

        repository = self.conflict_checker.repository
        bookings = repository.get_active_bookings_for_users(
            user_ids,
            exclude_booking_id=exclude_booking_id,
            window_start=uk_local_to_utc_ms(day, settings.working_hours_start),
            window_end=uk_local_to_utc_ms(day, settings.working_hours_end),
        )
        rules = repository.get_active_recurring_rules_for_users(user_ids)

        result = DayAvailability()
        busy: Dict[Tuple[str, str], BusySlot] = {}

        for minute_of_day in range(day_start_minutes, day_end_minutes, settings.slot_interval_minutes):
            # Must finish by the end of working hours in local wall-clock terms
            if minute_of_day + session_minutes > day_end_minutes:
                continue

            hour, minute = divmod(minute_of_day, 60)
            start_ms = uk_local_to_utc_ms(day, hour, minute)
            end_ms = end_time(start_ms, booking_type)

            if is_today and start_ms <= now:
                continue

            rule = self.conflict_checker.find_recurring_conflict(start_ms, user_ids, rules=rules)
            if rule is not None:
                if ("rule", rule.id) not in busy:
                    busy[("rule", rule.id)] = self._rule_busy_slot(rule, start_ms, acting_user_id)
                continue

            overlapping = self.conflict_checker.find_overlapping_bookings(
                start_ms, end_ms, user_ids, exclude_booking_id=exclude_booking_id, bookings=bookings
            )
            if overlapping:
                for booking in overlapping:
                    busy.setdefault(
                        ("booking", booking.id),
                        BusySlot(
                            start=format_uk_time(booking.timestamp),
                            end=format_uk_time(booking.end_timestamp),
                            whose_busy=whose_busy(acting_user_id, booking),
                        ),
                    )
                continue

            result.available_slots.append(f"{hour:02d}:{minute:02d}")

        result.busy_slots = sorted(busy.values(), key=lambda slot: (slot.start, slot.end))
        self.logger.debug(
            f"{len(result.available_slots)} slots available on {day.isoformat()} "
            f"for {from_user_id}/{to_user_id}"
        )
        return result
