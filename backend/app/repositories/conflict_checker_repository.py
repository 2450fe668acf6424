# backend/app/repositories/conflict_checker_repository.py
"""
ConflictChecker Repository for the TutorBook backend.

Supplies the two data sets conflict detection needs: slot-occupying bookings
and active recurring rules touching either party of a proposed booking.
"""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_BOOKING_STATUSES, RecurringRuleStatus
from ..core.exceptions import RepositoryException
from ..domain.booking_durations import PAID_SESSION_MINUTES
from ..models.booking import Booking
from ..models.recurring_rule import RecurringRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Longest session; an earlier start cannot reach into the window
_MAX_SESSION_MS = PAID_SESSION_MINUTES * 60_000


class ConflictCheckerRepository(BaseRepository[Booking]):
    """Repository for conflict checking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def get_active_bookings_for_users(
        self,
        user_ids: Iterable[str],
        exclude_booking_id: Optional[str] = None,
        window_start: Optional[int] = None,
        window_end: Optional[int] = None,
    ) -> List[Booking]:
        """
        Slot-occupying bookings where any of ``user_ids`` is a party.

        Args:
            user_ids: Users whose bookings block the slot
            exclude_booking_id: Booking being rescheduled
            window_start: Only bookings that could still be running at this instant
            window_end: Only bookings starting before this instant

        Returns:
            Bookings ordered by start time
        """
        ids = list(dict.fromkeys(user_ids))
        try:
            query = self.db.query(Booking).filter(
                or_(Booking.from_user_id.in_(ids), Booking.to_user_id.in_(ids)),
                Booking.status.in_([s.value for s in ACTIVE_BOOKING_STATUSES]),
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            if window_start is not None:
                query = query.filter(Booking.timestamp > window_start - _MAX_SESSION_MS)
            if window_end is not None:
                query = query.filter(Booking.timestamp < window_end)
            return query.order_by(Booking.timestamp, Booking.id).all()
        except Exception as e:
            self.logger.error(f"Error getting bookings for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get conflict bookings: {str(e)}")

    def get_active_recurring_rules_for_users(self, user_ids: Iterable[str]) -> List[RecurringRule]:
        ids = list(dict.fromkeys(user_ids))
        try:
            return (
                self.db.query(RecurringRule)
                .filter(
                    or_(RecurringRule.from_user_id.in_(ids), RecurringRule.to_user_id.in_(ids)),
                    RecurringRule.status == RecurringRuleStatus.ACTIVE.value,
                )
                .order_by(RecurringRule.created_at, RecurringRule.id)
                .all()
            )
        except Exception as e:
            self.logger.error(f"Error getting recurring rules for conflict check: {str(e)}")
            raise RepositoryException(f"Failed to get recurring rules: {str(e)}")
