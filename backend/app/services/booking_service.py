# backend/app/services/booking_service.py
"""
Booking Service for the TutorBook backend.

Owns the booking state machine:

    (new) --create--> pending
    pending | awaiting_reschedule --accept--> confirmed (free) | awaiting_payment (paid)
    pending | awaiting_reschedule --reject--> rejected
    pending | awaiting_reschedule --reschedule--> awaiting_reschedule
    any non-terminal --cancel--> canceled
    confirmed --complete--> completed

Payment transitions live in PaymentService and share ``apply_transition``.
Every transition runs in one transaction that re-reads the booking, checks
preconditions, patches the status and appends exactly one event.
Creation and rescheduling lock both users' rows before scanning for conflicts.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.enums import (
    ACTIVE_BOOKING_STATUSES,
    TERMINAL_BOOKING_STATUSES,
    BookingEventType,
    BookingStatus,
    BookingType,
)
from ..core.exceptions import (
    ActorExclusivityException,
    ForbiddenException,
    InvalidPairingException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import utc_now_ms
from ..domain.video_utils import compute_join_window, is_within_join_window
from ..models.booking import Booking
from ..models.recurring_rule import RecurringRule
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import SCOPE_BOOKING_JOBS, Principal, ServicePrincipal, UserPrincipal
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..schemas.booking import BookingCreate
from .base import BaseService
from .booking_eligibility_service import BookingEligibility, BookingEligibilityService
from .conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)

_RESPONDABLE = (BookingStatus.PENDING.value, BookingStatus.AWAITING_RESCHEDULE.value)
_TERMINAL = {s.value for s in TERMINAL_BOOKING_STATUSES}


def apply_transition(
    booking: Booking,
    event_type: BookingEventType,
    actor_id: str,
    now_ms: int,
    metadata: Optional[Dict[str, Any]] = None,
    new_status: Optional[BookingStatus] = None,
) -> None:
    """Patch the status (if any) and append the matching event in one step."""
    if new_status is not None:
        booking.status = new_status.value
    booking.add_event(event_type, actor_id, now_ms, metadata)
    prometheus_metrics.record_booking_transition(event_type.value, booking.status)


def require_service_scope(principal: Principal, scope: str) -> ServicePrincipal:
    if not isinstance(principal, ServicePrincipal) or not principal.has_scope(scope):
        raise ForbiddenException("This operation is reserved for platform services", code="SERVICE_ONLY")
    return principal


class BookingService(BaseService):
    """
    Service layer for the booking lifecycle.

    Every public method takes the acting principal explicitly.
    """

    def __init__(
        self,
        db: Session,
        conflict_checker: Optional[ConflictChecker] = None,
        eligibility_service: Optional[BookingEligibilityService] = None,
        repository: Optional[BookingRepository] = None,
    ):
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.conflict_checker = conflict_checker or ConflictChecker(db)
        self.eligibility_service = eligibility_service or BookingEligibilityService(
            db, booking_repository=self.repository
        )

    # Lookups and access checks

    def _get_booking_or_raise(self, booking_id: str, for_update: bool = False) -> Booking:
        if for_update:
            booking = self.repository.get_by_id_for_update(booking_id)
        else:
            booking = self.repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def _ensure_participant(self, booking: Booking, principal: UserPrincipal) -> None:
        if not booking.involves(principal.user_id):
            raise ForbiddenException("Not authorized to access this booking", code="NOT_PARTICIPANT")

    def _get_user_or_raise(self, user_id: str) -> User:
        user = self.user_repository.get_by_id(user_id, load_relationships=False)
        if not user:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        return user

    def _lock_parties(self, *user_ids: str) -> None:
        """Serialize scans and writes touching these users for the rest of the transaction."""
        self.user_repository.lock_users(user_ids)

    def resolve_pair(self, user_id: str, other_user_id: str) -> Tuple[User, User]:
        """
        Return ``(student, tutor)`` for two users.

        Raises:
            InvalidPairingException: Both tutors, both students, or an admin involved
        """
        if user_id == other_user_id:
            raise InvalidPairingException("Cannot book a session with yourself")
        user = self._get_user_or_raise(user_id)
        other = self._get_user_or_raise(other_user_id)

        if user.is_tutor and other.is_tutor:
            raise InvalidPairingException("Tutors cannot book sessions with other tutors")
        if not user.is_tutor and not other.is_tutor:
            raise InvalidPairingException("Students cannot book sessions with other students")

        tutor, student = (user, other) if user.is_tutor else (other, user)
        if not student.is_student:
            raise InvalidPairingException("Sessions can only be booked between a student and a tutor")
        return student, tutor

    # Creation

    def _create_booking(
        self,
        *,
        actor_id: str,
        student: User,
        tutor: User,
        timestamp: int,
        booking_type: BookingType,
        now_ms: int,
        skip_recurring_check: bool = False,
        recurring_rule_id: Optional[str] = None,
    ) -> Booking:
        """Eligibility, conflicts, insert and ``created`` event. Caller owns the transaction."""
        self._lock_parties(student.id, tutor.id)
        self.eligibility_service.ensure_eligible(student.id, tutor.id, booking_type)
        self.conflict_checker.validate_booking_time(
            start_ms=timestamp,
            booking_type=booking_type,
            from_user_id=student.id,
            to_user_id=tutor.id,
            acting_user_id=actor_id,
            skip_recurring_check=skip_recurring_check,
            now_ms=now_ms,
        )

        booking = self.repository.create(
            from_user_id=student.id,
            to_user_id=tutor.id,
            timestamp=timestamp,
            booking_type=booking_type.value,
            status=BookingStatus.PENDING.value,
            recurring_rule_id=recurring_rule_id,
            created_at=now_ms,
        )
        apply_transition(
            booking, BookingEventType.CREATED, actor_id, now_ms, {"scheduled_time": timestamp}
        )
        self.db.flush()
        return booking

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self, principal: UserPrincipal, data: BookingCreate, now_ms: Optional[int] = None
    ) -> Booking:
        """
        Create a pending booking between the caller and ``data.counterpart_id``.

        Gated by tutor/student pairing, eligibility and the conflict checker,
        in that order.
        """
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            student, tutor = self.resolve_pair(principal.user_id, data.counterpart_id)
            booking = self._create_booking(
                actor_id=principal.user_id,
                student=student,
                tutor=tutor,
                timestamp=data.timestamp,
                booking_type=BookingType(data.booking_type),
                now_ms=now,
            )
        self.logger.info(
            f"Booking {booking.id} created by {principal.user_id}: "
            f"{booking.booking_type} at {booking.timestamp}"
        )
        return booking

    @BaseService.measure_operation("create_recurring_booking")
    def create_recurring_booking(
        self,
        principal: ServicePrincipal,
        rule: RecurringRule,
        timestamp: int,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """
        Materialize one occurrence of ``rule`` and stamp its watermark atomically.

        The rule's own reservation is not treated as a conflict; overlap with
        other bookings still is. The rule owner is recorded as the actor.
        """
        require_service_scope(principal, SCOPE_BOOKING_JOBS)
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            student, tutor = self.resolve_pair(rule.from_user_id, rule.to_user_id)
            booking_type = self.eligibility_service.recurring_booking_type(student.id, tutor.id)
            booking = self._create_booking(
                actor_id=rule.from_user_id,
                student=student,
                tutor=tutor,
                timestamp=timestamp,
                booking_type=booking_type,
                now_ms=now,
                skip_recurring_check=True,
                recurring_rule_id=rule.id,
            )
            rule.last_booking_created_at = now
        return booking

    # Responses from the other party

    @BaseService.measure_operation("accept_booking")
    def accept_booking(
        self, principal: UserPrincipal, booking_id: str, now_ms: Optional[int] = None
    ) -> Booking:
        """Accept a pending request or a reschedule proposal made by the other party."""
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            self._ensure_participant(booking, principal)
            if booking.status not in _RESPONDABLE:
                raise InvalidStateTransitionException(
                    "Can only accept pending or awaiting reschedule bookings",
                    current_status=booking.status,
                )
            if booking.last_action_by_user_id == principal.user_id:
                raise ActorExclusivityException("accept")

            was_reschedule = booking.status == BookingStatus.AWAITING_RESCHEDULE.value
            new_status = (
                BookingStatus.CONFIRMED
                if booking.booking_type == BookingType.FREE.value
                else BookingStatus.AWAITING_PAYMENT
            )
            apply_transition(
                booking,
                BookingEventType.ACCEPTED,
                principal.user_id,
                now,
                {"was_reschedule": was_reschedule, "accepted_time": booking.timestamp},
                new_status=new_status,
            )
        return booking

    @BaseService.measure_operation("reject_booking")
    def reject_booking(
        self, principal: UserPrincipal, booking_id: str, now_ms: Optional[int] = None
    ) -> Booking:
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            self._ensure_participant(booking, principal)
            if booking.status not in _RESPONDABLE:
                raise InvalidStateTransitionException(
                    "Can only reject pending or awaiting reschedule bookings",
                    current_status=booking.status,
                )
            if booking.last_action_by_user_id == principal.user_id:
                raise ActorExclusivityException("reject")

            was_reschedule = booking.status == BookingStatus.AWAITING_RESCHEDULE.value
            apply_transition(
                booking,
                BookingEventType.REJECTED,
                principal.user_id,
                now,
                {"was_reschedule": was_reschedule},
                new_status=BookingStatus.REJECTED,
            )
        return booking

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        principal: UserPrincipal,
        booking_id: str,
        new_timestamp: int,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """
        Propose a new start time. The other participant must then accept or reject.

        The booking itself is excluded from the conflict scan.
        """
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            self._ensure_participant(booking, principal)
            if booking.status not in _RESPONDABLE:
                raise InvalidStateTransitionException(
                    "Can only reschedule pending or awaiting reschedule bookings",
                    current_status=booking.status,
                )

            self._lock_parties(booking.from_user_id, booking.to_user_id)
            self.conflict_checker.validate_booking_time(
                start_ms=new_timestamp,
                booking_type=booking.booking_type,
                from_user_id=booking.from_user_id,
                to_user_id=booking.to_user_id,
                acting_user_id=principal.user_id,
                exclude_booking_id=booking.id,
                now_ms=now,
            )

            old_timestamp = booking.timestamp
            booking.timestamp = new_timestamp
            apply_transition(
                booking,
                BookingEventType.RESCHEDULED,
                principal.user_id,
                now,
                {
                    "old_time": old_timestamp,
                    "new_time": new_timestamp,
                    "proposed_by": "tutor" if principal.user_id == booking.to_user_id else "student",
                },
                new_status=BookingStatus.AWAITING_RESCHEDULE,
            )
        return booking

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self,
        principal: UserPrincipal,
        booking_id: str,
        reason: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> Booking:
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            self._ensure_participant(booking, principal)
            if booking.status in _TERMINAL:
                raise InvalidStateTransitionException(
                    "Cannot cancel a completed, canceled, or rejected booking",
                    current_status=booking.status,
                )
            metadata = {"reason": reason} if reason else {}
            apply_transition(
                booking,
                BookingEventType.CANCELED,
                principal.user_id,
                now,
                metadata,
                new_status=BookingStatus.CANCELED,
            )
        return booking

    # Completion

    @BaseService.measure_operation("complete_booking")
    def complete_booking(
        self, principal: UserPrincipal, booking_id: str, now_ms: Optional[int] = None
    ) -> Booking:
        """Manual completion by the tutor."""
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            self._ensure_participant(booking, principal)
            if booking.status != BookingStatus.CONFIRMED.value:
                raise InvalidStateTransitionException(
                    "Can only complete confirmed bookings", current_status=booking.status
                )
            if principal.user_id != booking.to_user_id:
                raise ForbiddenException(
                    "Only the tutor can manually complete a booking", code="TUTOR_ONLY"
                )
            apply_transition(
                booking,
                BookingEventType.COMPLETED,
                principal.user_id,
                now,
                {"completed_at": now, "automatic": False},
                new_status=BookingStatus.COMPLETED,
            )
        return booking

    def _auto_complete_one(self, booking_id: str, now_ms: int) -> bool:
        with self.transaction():
            booking = self._get_booking_or_raise(booking_id, for_update=True)
            if booking.status != BookingStatus.CONFIRMED.value or booking.end_timestamp > now_ms:
                return False
            apply_transition(
                booking,
                BookingEventType.COMPLETED,
                booking.to_user_id,
                now_ms,
                {"completed_at": now_ms, "automatic": True},
                new_status=BookingStatus.COMPLETED,
            )
        return True

    @BaseService.measure_operation("auto_complete_bookings")
    def auto_complete_finished_bookings(
        self, principal: ServicePrincipal, now_ms: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Complete every confirmed booking whose session has ended.

        Each booking commits on its own; a failure is logged and counted as
        skipped without stopping the batch. The tutor is recorded as actor.
        """
        require_service_scope(principal, SCOPE_BOOKING_JOBS)
        now = utc_now_ms() if now_ms is None else now_ms
        candidates = [(b.id, b.end_timestamp) for b in self.repository.get_confirmed_started_before(now)]

        completed_count = 0
        skipped_count = 0
        for booking_id, end_ms in candidates:
            if end_ms > now:
                skipped_count += 1
                continue
            try:
                if self._auto_complete_one(booking_id, now):
                    completed_count += 1
                else:
                    skipped_count += 1
            except Exception as e:
                self.logger.error(f"Error auto-completing booking {booking_id}: {str(e)}")
                skipped_count += 1

        prometheus_metrics.record_job_items("auto_complete_bookings", "completed", completed_count)
        prometheus_metrics.record_job_items("auto_complete_bookings", "skipped", skipped_count)
        self.logger.info(
            f"Auto-completion complete: {completed_count} completed, {skipped_count} skipped/not ready"
        )
        return {
            "completed_count": completed_count,
            "skipped_count": skipped_count,
            "total_checked": len(candidates),
        }

    # Queries

    @BaseService.measure_operation("get_booking")
    def get_booking(self, principal: UserPrincipal, booking_id: str) -> Booking:
        """Participants and admins may read a booking."""
        booking = self._get_booking_or_raise(booking_id)
        if not principal.is_admin:
            self._ensure_participant(booking, principal)
        return booking

    def get_booking_eligibility(
        self, principal: UserPrincipal, other_user_id: str
    ) -> BookingEligibility:
        self.resolve_pair(principal.user_id, other_user_id)
        return self.eligibility_service.get_booking_eligibility(principal.user_id, other_user_id)

    @BaseService.measure_operation("list_user_bookings")
    def list_user_bookings(
        self,
        principal: UserPrincipal,
        status: Optional[BookingStatus] = None,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> Tuple[List[Booking], int]:
        """One page of the caller's bookings, latest session first, plus the total."""
        size = page_size or settings.bookings_page_size
        page = max(page, 1)
        statuses = [status] if status else None
        items = self.repository.list_for_user(
            principal.user_id, statuses=statuses, offset=(page - 1) * size, limit=size
        )
        total = self.repository.count_for_user(principal.user_id, statuses=statuses)
        return items, total

    @BaseService.measure_operation("get_user_booking_counts")
    def get_user_booking_counts(
        self, principal: UserPrincipal, now_ms: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Counts for the bookings dashboard.

        active: slot-occupying statuses starting in the future; past: terminal
        or already started; pending: waiting on the caller's response.
        """
        now = utc_now_ms() if now_ms is None else now_ms
        count = self.repository.count_for_user
        return {
            "active": count(
                principal.user_id, statuses=list(ACTIVE_BOOKING_STATUSES), starts_after=now
            ),
            "past": self.repository.count_past_for_user(principal.user_id, now),
            "pending": count(
                principal.user_id,
                statuses=[BookingStatus.PENDING, BookingStatus.AWAITING_RESCHEDULE],
                awaiting_response=True,
            ),
        }

    # Video session collaboration

    @BaseService.measure_operation("verify_participant")
    def verify_participant(self, booking_id: str, user_id: str) -> Dict[str, Any]:
        """
        Confirm ``user_id`` takes part in the booking and return both parties.

        Returns:
            ``{"booking", "tutor": {id, name, email}, "student": {id, name, email}}``
        """
        booking = self._get_booking_or_raise(booking_id)
        if not booking.involves(user_id):
            raise ForbiddenException(
                "Unauthorized: User is not a participant in this booking", code="NOT_PARTICIPANT"
            )
        tutor = self._get_user_or_raise(booking.to_user_id)
        student = self._get_user_or_raise(booking.from_user_id)
        if not tutor.name or not tutor.email:
            raise ValidationException("Tutor is missing required information (name or email)")
        if not student.name or not student.email:
            raise ValidationException("Student is missing required information (name or email)")
        return {
            "booking": booking,
            "tutor": {"id": tutor.id, "name": tutor.name, "email": tutor.email},
            "student": {"id": student.id, "name": student.name, "email": student.email},
        }

    def get_booking_with_users(self, principal: UserPrincipal, booking_id: str) -> Dict[str, Any]:
        return self.verify_participant(booking_id, principal.user_id)

    def get_join_window(
        self, principal: UserPrincipal, booking_id: str, now_ms: Optional[int] = None
    ) -> Dict[str, Any]:
        """Whether the caller may join the video session right now."""
        now = utc_now_ms() if now_ms is None else now_ms
        booking = self.verify_participant(booking_id, principal.user_id)["booking"]
        opens_at, closes_at = compute_join_window(booking.timestamp)
        can_join = booking.status == BookingStatus.CONFIRMED.value and is_within_join_window(
            booking.timestamp, now
        )
        return {
            "booking_id": booking.id,
            "can_join": can_join,
            "opens_at": opens_at,
            "closes_at": closes_at,
        }

