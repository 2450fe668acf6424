# backend/app/routes/v1/payments.py
"""
Payment routes - API v1

Checkout itself happens with the payment provider; these endpoints record
its outcome against the booking.

Endpoints:
    GET /bookings/{booking_id} - Payment records of a booking
    POST /bookings/{booking_id}/initiate - Record a checkout session (payer)
    POST /bookings/{booking_id}/refund - Record a refund (participant)
    POST /webhooks/bookings/{booking_id}/succeeded - Checkout completed (service only)
    POST /webhooks/bookings/{booking_id}/failed - Checkout failed (service only)
    POST /webhooks/bookings/{booking_id}/refunded - Refund issued (service only)
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, status
from fastapi.params import Path

from ...api.dependencies import (
    get_current_principal,
    get_payment_service,
    require_service_principal,
)
from ...core.exceptions import DomainException
from ...principal import SCOPE_PAYMENT_WEBHOOK, ServicePrincipal, UserPrincipal
from ...schemas.booking import BookingResponse
from ...schemas.payment import (
    PaymentFailedRequest,
    PaymentInitiateRequest,
    PaymentListResponse,
    PaymentRefundRequest,
    PaymentResponse,
    PaymentSucceededRequest,
)
from ...services.payment_service import PaymentService
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments-v1"])

webhook_principal = require_service_principal(SCOPE_PAYMENT_WEBHOOK)


@router.get("/bookings/{booking_id}", response_model=PaymentListResponse)
async def get_booking_payments(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentListResponse:
    try:
        payments = await asyncio.to_thread(service.get_payments_for_booking, principal, booking_id)
        return PaymentListResponse(
            booking_id=booking_id,
            payments=[PaymentResponse.model_validate(p) for p in payments],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/bookings/{booking_id}/initiate",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def initiate_payment(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: PaymentInitiateRequest = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            service.initiate_payment,
            principal,
            booking_id,
            payload.amount,
            payload.currency,
            payload.stripe_session_id,
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/refund", response_model=BookingResponse)
async def refund_payment(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: PaymentRefundRequest = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.refund_payment,
            principal,
            booking_id,
            payload.amount,
            payload.currency,
            payload.stripe_payment_intent_id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/webhooks/bookings/{booking_id}/succeeded", response_model=BookingResponse)
async def payment_succeeded_webhook(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: PaymentSucceededRequest = Body(...),
    principal: ServicePrincipal = Depends(webhook_principal),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.mark_payment_succeeded,
            principal,
            booking_id,
            payload.amount,
            payload.currency,
            payload.stripe_payment_intent_id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/webhooks/bookings/{booking_id}/failed", response_model=BookingResponse)
async def payment_failed_webhook(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: Optional[PaymentFailedRequest] = Body(None),
    principal: ServicePrincipal = Depends(webhook_principal),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.mark_payment_failed,
            principal,
            booking_id,
            payload.reason if payload else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/webhooks/bookings/{booking_id}/refunded", response_model=BookingResponse)
async def payment_refunded_webhook(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: PaymentRefundRequest = Body(...),
    principal: ServicePrincipal = Depends(webhook_principal),
    service: PaymentService = Depends(get_payment_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(
            service.refund_payment,
            principal,
            booking_id,
            payload.amount,
            payload.currency,
            payload.stripe_payment_intent_id,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
