# backend/app/services/booking_eligibility_service.py
"""
Booking Eligibility Service for the TutorBook backend.

Decides which booking type a student/tutor pair may create next. Every pair
starts with one free 15-minute meeting; paid sessions unlock only once that
free meeting has actually been completed.
"""

from dataclasses import dataclass
import logging
from typing import Iterable, Optional, Union

from sqlalchemy.orm import Session

from ..core.enums import ACTIVE_BOOKING_STATUSES, BookingStatus, BookingType
from ..core.exceptions import BookingEligibilityException
from ..models.booking import Booking
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from .base import BaseService

logger = logging.getLogger(__name__)

_ACTIVE = {s.value for s in ACTIVE_BOOKING_STATUSES}
_RETRYABLE = {BookingStatus.CANCELED.value, BookingStatus.REJECTED.value}


@dataclass(frozen=True)
class BookingEligibility:
    can_create_free: bool
    can_create_paid: bool
    has_active_free_booking: bool

    def allows(self, booking_type: Union[BookingType, str]) -> bool:
        if BookingType(booking_type) == BookingType.FREE:
            return self.can_create_free
        return self.can_create_paid

    @property
    def preferred_type(self) -> Optional[BookingType]:
        """Paid when unlocked, otherwise free, otherwise nothing."""
        if self.can_create_paid:
            return BookingType.PAID
        if self.can_create_free:
            return BookingType.FREE
        return None


def evaluate_eligibility(bookings: Iterable[Booking]) -> BookingEligibility:
    """
    Apply the free-trial rules to every booking between a pair.

    Checked in priority order, first match wins:
    1. an active free booking blocks everything
    2. a completed free booking unlocks paid sessions permanently
    3. a canceled or rejected free booking may be retried as free
    4. no free booking yet: the first booking must be free
    """
    free_statuses = {b.status for b in bookings if b.booking_type == BookingType.FREE.value}

    if free_statuses & _ACTIVE:
        return BookingEligibility(False, False, True)
    if BookingStatus.COMPLETED.value in free_statuses:
        return BookingEligibility(False, True, False)
    if free_statuses & _RETRYABLE:
        return BookingEligibility(True, False, False)
    return BookingEligibility(True, False, False)


class BookingEligibilityService(BaseService):
    def __init__(self, db: Session, booking_repository: Optional[BookingRepository] = None):
        super().__init__(db)
        self.booking_repository = booking_repository or RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("get_booking_eligibility")
    def get_booking_eligibility(self, user_id: str, other_user_id: str) -> BookingEligibility:
        bookings = self.booking_repository.get_pair_bookings(user_id, other_user_id)
        return evaluate_eligibility(bookings)

    def ensure_eligible(
        self, user_id: str, other_user_id: str, booking_type: Union[BookingType, str]
    ) -> BookingEligibility:
        """
        Raise BookingEligibilityException unless ``booking_type`` is allowed next.

        Returns:
            The eligibility that was evaluated
        """
        requested = BookingType(booking_type)
        eligibility = self.get_booking_eligibility(user_id, other_user_id)
        if eligibility.allows(requested):
            return eligibility

        if eligibility.has_active_free_booking:
            message = (
                "There is already an active free meeting between you and this user. "
                "It must be completed or canceled before booking again."
            )
        elif requested == BookingType.FREE:
            message = "The free meeting with this user has already been completed. Please book a paid session."
        else:
            message = "A free meeting must be completed before booking a paid session."

        self.logger.info(
            f"Booking type {requested.value} not eligible for pair {user_id}/{other_user_id}: {eligibility}"
        )
        raise BookingEligibilityException(message, requested_type=requested.value)

    def recurring_booking_type(self, student_id: str, tutor_id: str) -> BookingType:
        """Type of a rule's next occurrence: the pair's preferred type, else paid."""
        preferred = self.get_booking_eligibility(student_id, tutor_id).preferred_type
        return preferred or BookingType.PAID
