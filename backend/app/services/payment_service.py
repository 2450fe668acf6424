# backend/app/services/payment_service.py
"""
Payment Service for the TutorBook backend.

Translates checkout and webhook outcomes into booking transitions:

    awaiting_payment --initiate--> processing_payment
    processing_payment --succeeded--> confirmed
    processing_payment | awaiting_payment --failed--> awaiting_payment
    confirmed --refund--> canceled   (completed/canceled keep their status)

The Payment row and the booking event are written in the same transaction.
Webhook transitions record the payer as the acting user.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.enums import BookingEventType, BookingStatus, BookingType, PaymentStatus
from ..core.exceptions import InvalidStateTransitionException, NotFoundException, ValidationException
from ..core.timezone_utils import utc_now_ms
from ..models.booking import Booking
from ..models.payment import Payment
from ..principal import SCOPE_PAYMENT_WEBHOOK, Principal, ServicePrincipal, UserPrincipal
from ..repositories import RepositoryFactory
from ..repositories.payment_repository import PaymentRepository
from .base import BaseService
from .booking_service import BookingService, apply_transition, require_service_scope

logger = logging.getLogger(__name__)

_REFUNDABLE = (
    BookingStatus.CONFIRMED.value,
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELED.value,
)


class PaymentService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        repository: Optional[PaymentRepository] = None,
    ):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.repository = repository or RepositoryFactory.create_payment_repository(db)

    def _validate_amount(self, amount: int, currency: str) -> str:
        if amount <= 0:
            raise ValidationException("Payment amount must be positive")
        normalized = (currency or "").strip().lower()
        if len(normalized) != 3:
            raise ValidationException("Currency must be a three-letter ISO code")
        return normalized

    def _payer_id(self, booking: Booking, payment: Optional[Payment]) -> str:
        return payment.user_id if payment else booking.from_user_id

    @BaseService.measure_operation("initiate_payment")
    def initiate_payment(
        self,
        principal: UserPrincipal,
        booking_id: str,
        amount: int,
        currency: str,
        stripe_session_id: str,
        now_ms: Optional[int] = None,
    ) -> Payment:
        """
        Record a checkout session for a paid booking awaiting payment.

        Args:
            principal: The payer, a participant of the booking
            amount: Minor currency units
            currency: ISO currency code
            stripe_session_id: Checkout session reference
        """
        now = utc_now_ms() if now_ms is None else now_ms
        currency = self._validate_amount(amount, currency)
        with self.transaction():
            booking = self.booking_service._get_booking_or_raise(booking_id, for_update=True)
            self.booking_service._ensure_participant(booking, principal)
            if booking.status != BookingStatus.AWAITING_PAYMENT.value:
                raise InvalidStateTransitionException(
                    "Can only initiate payment for bookings awaiting payment",
                    current_status=booking.status,
                )
            payment = self.repository.create(
                booking_id=booking.id,
                user_id=principal.user_id,
                stripe_session_id=stripe_session_id,
                status=PaymentStatus.PROCESSING.value,
                amount=amount,
                currency=currency,
                created_at=now,
                updated_at=now,
            )
            apply_transition(
                booking,
                BookingEventType.PAYMENT_INITIATED,
                principal.user_id,
                now,
                {"amount": amount, "currency": currency, "stripe_session_id": stripe_session_id},
                new_status=BookingStatus.PROCESSING_PAYMENT,
            )
        self.logger.info(f"Payment {payment.id} initiated for booking {booking.id}")
        return payment

    @BaseService.measure_operation("mark_payment_succeeded")
    def mark_payment_succeeded(
        self,
        principal: ServicePrincipal,
        booking_id: str,
        amount: int,
        currency: str,
        stripe_payment_intent_id: str,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """Webhook: the checkout completed. Confirms the booking."""
        require_service_scope(principal, SCOPE_PAYMENT_WEBHOOK)
        now = utc_now_ms() if now_ms is None else now_ms
        currency = self._validate_amount(amount, currency)
        with self.transaction():
            booking = self.booking_service._get_booking_or_raise(booking_id, for_update=True)
            if booking.status != BookingStatus.PROCESSING_PAYMENT.value:
                raise InvalidStateTransitionException(
                    "Can only confirm payment for bookings processing payment",
                    current_status=booking.status,
                )
            payment = self.repository.get_latest_for_booking(booking.id)
            if payment:
                payment.status = PaymentStatus.SUCCEEDED.value
                payment.stripe_payment_intent_id = stripe_payment_intent_id
                payment.updated_at = now
            apply_transition(
                booking,
                BookingEventType.PAYMENT_SUCCEEDED,
                self._payer_id(booking, payment),
                now,
                {
                    "amount": amount,
                    "currency": currency,
                    "stripe_payment_intent_id": stripe_payment_intent_id,
                },
                new_status=BookingStatus.CONFIRMED,
            )
        return booking

    @BaseService.measure_operation("mark_payment_failed")
    def mark_payment_failed(
        self,
        principal: ServicePrincipal,
        booking_id: str,
        reason: Optional[str] = None,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """Webhook: the checkout failed or expired. The payer may try again."""
        require_service_scope(principal, SCOPE_PAYMENT_WEBHOOK)
        now = utc_now_ms() if now_ms is None else now_ms
        with self.transaction():
            booking = self.booking_service._get_booking_or_raise(booking_id, for_update=True)
            if booking.status not in (
                BookingStatus.PROCESSING_PAYMENT.value,
                BookingStatus.AWAITING_PAYMENT.value,
            ):
                raise InvalidStateTransitionException(
                    "Can only fail payment for bookings awaiting or processing payment",
                    current_status=booking.status,
                )
            payment = self.repository.get_latest_for_booking(booking.id)
            if payment and payment.status in (PaymentStatus.PENDING.value, PaymentStatus.PROCESSING.value):
                payment.status = PaymentStatus.FAILED.value
                payment.failure_reason = reason
                payment.updated_at = now
            apply_transition(
                booking,
                BookingEventType.PAYMENT_FAILED,
                self._payer_id(booking, payment),
                now,
                {"reason": reason} if reason else {},
                new_status=BookingStatus.AWAITING_PAYMENT,
            )
        return booking

    @BaseService.measure_operation("refund_payment")
    def refund_payment(
        self,
        principal: Principal,
        booking_id: str,
        amount: int,
        currency: str,
        stripe_payment_intent_id: str,
        now_ms: Optional[int] = None,
    ) -> Booking:
        """
        Record a refund for a paid booking.

        A confirmed booking becomes canceled; completed and canceled bookings
        keep their status and only gain the ``payment_refunded`` event.
        Callable by a participant or by the payment webhook.
        """
        now = utc_now_ms() if now_ms is None else now_ms
        currency = self._validate_amount(amount, currency)
        with self.transaction():
            booking = self.booking_service._get_booking_or_raise(booking_id, for_update=True)
            if isinstance(principal, UserPrincipal):
                self.booking_service._ensure_participant(booking, principal)
                actor_id = principal.user_id
            else:
                require_service_scope(principal, SCOPE_PAYMENT_WEBHOOK)
                actor_id = booking.from_user_id

            if booking.status not in _REFUNDABLE:
                raise InvalidStateTransitionException(
                    "Can only refund confirmed, completed, or canceled bookings",
                    current_status=booking.status,
                )
            if booking.booking_type != BookingType.PAID.value:
                raise ValidationException("Cannot refund a free booking", code="FREE_BOOKING_REFUND")

            for payment in self.repository.get_for_booking(booking.id):
                if payment.status == PaymentStatus.SUCCEEDED.value:
                    payment.status = PaymentStatus.REFUNDED.value
                    payment.updated_at = now

            new_status = (
                BookingStatus.CANCELED if booking.status == BookingStatus.CONFIRMED.value else None
            )
            apply_transition(
                booking,
                BookingEventType.PAYMENT_REFUNDED,
                actor_id,
                now,
                {
                    "amount": amount,
                    "currency": currency,
                    "stripe_payment_intent_id": stripe_payment_intent_id,
                },
                new_status=new_status,
            )
        return booking

    def get_payments_for_booking(self, principal: UserPrincipal, booking_id: str) -> List[Payment]:
        self.booking_service.get_booking(principal, booking_id)
        return self.repository.get_for_booking(booking_id)

    def get_payment_by_session(self, stripe_session_id: str) -> Payment:
        payment = self.repository.get_by_session_id(stripe_session_id)
        if not payment:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        return payment
