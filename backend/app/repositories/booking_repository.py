# backend/app/repositories/booking_repository.py
"""
Booking Repository for the TutorBook backend.

Pair lookups run one indexed query per direction (student→tutor and
tutor→student) instead of scanning every booking.
"""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.enums import TERMINAL_BOOKING_STATUSES, BookingStatus, BookingType
from ..core.exceptions import RepositoryException
from ..models.booking import Booking
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """Repository for booking data access."""

    def __init__(self, db: Session):
        super().__init__(db, Booking)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.student),
            joinedload(Booking.tutor),
            selectinload(Booking.events),
        )

    def get_pair_bookings(
        self,
        user_id: str,
        other_user_id: str,
        booking_type: Optional[BookingType] = None,
    ) -> List[Booking]:
        """
        All bookings between two users, in either direction.

        Args:
            user_id: One party
            other_user_id: The other party
            booking_type: Restrict to free or paid bookings

        Returns:
            Bookings from both directions, oldest first
        """
        try:
            results: List[Booking] = []
            for from_id, to_id in ((user_id, other_user_id), (other_user_id, user_id)):
                query = self.db.query(Booking).filter(
                    Booking.from_user_id == from_id,
                    Booking.to_user_id == to_id,
                )
                if booking_type is not None:
                    query = query.filter(Booking.booking_type == BookingType(booking_type).value)
                results.extend(query.all())
            results.sort(key=lambda b: (b.timestamp, b.id))
            return results
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings between {user_id} and {other_user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get pair bookings: {str(e)}")

    def _user_query(self, user_id: str, statuses: Optional[Sequence[BookingStatus]] = None) -> Query:
        query = self.db.query(Booking).filter(
            or_(Booking.from_user_id == user_id, Booking.to_user_id == user_id)
        )
        if statuses:
            query = query.filter(Booking.status.in_([BookingStatus(s).value for s in statuses]))
        return query

    def list_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[BookingStatus]] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> List[Booking]:
        """A user's bookings as student or tutor, latest session first."""
        try:
            return (
                self._apply_eager_loading(self._user_query(user_id, statuses))
                .order_by(Booking.timestamp.desc(), Booking.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to list bookings: {str(e)}")

    def count_for_user(
        self,
        user_id: str,
        statuses: Optional[Sequence[BookingStatus]] = None,
        starts_after: Optional[int] = None,
        awaiting_response: bool = False,
    ) -> int:
        """Count a user's bookings; ``awaiting_response`` keeps those the other party acted on last."""
        try:
            query = self._user_query(user_id, statuses)
            if starts_after is not None:
                query = query.filter(Booking.timestamp > starts_after)
            if awaiting_response:
                query = query.filter(Booking.last_action_by_user_id != user_id)
            return query.count()
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to count bookings: {str(e)}")

    def get_confirmed_started_before(self, cutoff_ms: int) -> List[Booking]:
        """
        Confirmed bookings whose session started at or before ``cutoff_ms``.

        Callers still compare each booking's own end time, since the cutoff
        cannot know the booking type.
        """
        try:
            return (
                self.db.query(Booking)
                .filter(
                    Booking.status == BookingStatus.CONFIRMED.value,
                    Booking.timestamp <= cutoff_ms,
                )
                .order_by(Booking.timestamp)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting finished bookings: {str(e)}")
            raise RepositoryException(f"Failed to get finished bookings: {str(e)}")

    def count_past_for_user(self, user_id: str, now_ms: int) -> int:
        """Terminal bookings plus any booking whose start has passed."""
        try:
            return (
                self._user_query(user_id)
                .filter(
                    or_(
                        Booking.status.in_([s.value for s in TERMINAL_BOOKING_STATUSES]),
                        Booking.timestamp <= now_ms,
                    )
                )
                .count()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting past bookings for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to count past bookings: {str(e)}")
