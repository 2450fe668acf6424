# backend/app/routes/v1/bookings.py
"""
Booking routes - API v1

Versioned booking endpoints under /api/v1/bookings.
All business logic delegated to BookingService.

Endpoints:
    GET / - List the caller's bookings with status filter and pagination
    POST / - Request a session with another user
    GET /counts - Dashboard counts (active, past, pending)
    GET /eligibility - Free/paid eligibility with another user
    GET /available-slots - Bookable start times for one UK-local day
    POST /jobs/auto-complete - Complete finished sessions (service only)
    GET /{booking_id} - Booking details with its event log
    GET /{booking_id}/participants - Booking with tutor and student details
    GET /{booking_id}/join - Video join window
    POST /{booking_id}/accept - Accept a request or reschedule proposal
    POST /{booking_id}/reject - Reject a request or reschedule proposal
    POST /{booking_id}/reschedule - Propose a new time
    POST /{booking_id}/cancel - Cancel a booking
    POST /{booking_id}/complete - Mark a session completed (tutor only)
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.params import Path

from ...api.dependencies import (
    get_availability_service,
    get_booking_service,
    get_current_principal,
    require_service_principal,
)
from ...core.config import settings
from ...core.enums import BookingStatus, BookingType
from ...core.exceptions import DomainException, ValidationException
from ...core.timezone_utils import parse_uk_date
from ...principal import SCOPE_BOOKING_JOBS, ServicePrincipal, UserPrincipal
from ...schemas.booking import (
    AvailableSlotsResponse,
    BookingCancel,
    BookingCountsResponse,
    BookingCreate,
    BookingEligibilityResponse,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    BookingWithUsersResponse,
    BusySlotResponse,
    JoinWindowResponse,
    ParticipantResponse,
    validate_date_only,
)
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["bookings-v1"])

ULID_PATH_PATTERN = r"^[0-9A-HJKMNP-TV-Z]{26}$"


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def booking_id_path() -> str:
    return Path(
        ...,
        description="Booking ULID",
        pattern=ULID_PATH_PATTERN,
        examples=["01HF4G12ABCDEF3456789XYZAB"],
    )


# ============================================================================
# SECTION 1: Static routes (no path parameters)
# ============================================================================


@router.get("", response_model=BookingListResponse)
async def list_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    per_page: Optional[int] = Query(None, ge=1, le=100),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingListResponse:
    """List the caller's bookings as student or tutor, latest session first."""
    try:
        items, total = await asyncio.to_thread(
            booking_service.list_user_bookings,
            principal,
            status=status_filter,
            page=page,
            page_size=per_page,
        )
        page_size = per_page or settings.bookings_page_size
        return BookingListResponse(
            items=[BookingResponse.model_validate(b) for b in items],
            total=total,
            page=page,
            page_size=page_size,
            has_next=page * page_size < total,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """
    Request a session with another user.

    The first session between a pair must be free (15 minutes); paid
    sessions (60 minutes) unlock once it is completed.
    """
    try:
        booking = await asyncio.to_thread(booking_service.create_booking, principal, booking_data)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/counts", response_model=BookingCountsResponse)
async def get_booking_counts(
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingCountsResponse:
    counts = await asyncio.to_thread(booking_service.get_user_booking_counts, principal)
    return BookingCountsResponse(**counts)


@router.get("/eligibility", response_model=BookingEligibilityResponse)
async def get_booking_eligibility(
    other_user_id: str = Query(..., description="The other party"),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingEligibilityResponse:
    try:
        eligibility = await asyncio.to_thread(
            booking_service.get_booking_eligibility, principal, other_user_id
        )
        return BookingEligibilityResponse.model_validate(eligibility)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/available-slots", response_model=AvailableSlotsResponse)
async def get_available_slots(
    date: str = Query(..., description="UK-local calendar date, YYYY-MM-DD"),
    counterpart_id: str = Query(..., description="The other party"),
    booking_type: BookingType = Query(BookingType.FREE),
    exclude_booking_id: Optional[str] = Query(None, description="Booking being rescheduled"),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailableSlotsResponse:
    """
    Start times (UK local ``HH:MM``) that fit a session of ``booking_type``,
    plus what blocks the others.
    """
    try:
        day_str = validate_date_only(date)
    except ValueError as e:
        handle_domain_exception(ValidationException(str(e), code="INVALID_DATE"))
    day = parse_uk_date(day_str)

    def _load() -> AvailableSlotsResponse:
        student, tutor = booking_service.resolve_pair(principal.user_id, counterpart_id)
        availability = availability_service.get_available_slots(
            day=day,
            from_user_id=student.id,
            to_user_id=tutor.id,
            booking_type=booking_type,
            acting_user_id=principal.user_id,
            exclude_booking_id=exclude_booking_id,
        )
        return AvailableSlotsResponse(
            date=day_str,
            available_slots=availability.available_slots,
            busy_slots=[
                BusySlotResponse(start=b.start, end=b.end, whose_busy=b.whose_busy)
                for b in availability.busy_slots
            ],
        )

    try:
        return await asyncio.to_thread(_load)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/jobs/auto-complete")
async def run_auto_complete(
    principal: ServicePrincipal = Depends(require_service_principal(SCOPE_BOOKING_JOBS)),
    booking_service: BookingService = Depends(get_booking_service),
) -> dict[str, int]:
    """Manual trigger for the auto-complete job."""
    try:
        return await asyncio.to_thread(booking_service.auto_complete_finished_bookings, principal)
    except DomainException as e:
        handle_domain_exception(e)


# ============================================================================
# SECTION 2: Dynamic routes (/{booking_id})
# ============================================================================


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, principal, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}/participants", response_model=BookingWithUsersResponse)
async def get_booking_with_users(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingWithUsersResponse:
    try:
        data = await asyncio.to_thread(booking_service.get_booking_with_users, principal, booking_id)
        return BookingWithUsersResponse(
            booking=BookingResponse.model_validate(data["booking"]),
            tutor=ParticipantResponse(**data["tutor"]),
            student=ParticipantResponse(**data["student"]),
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{booking_id}/join", response_model=JoinWindowResponse)
async def get_join_window(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> JoinWindowResponse:
    """Whether the caller may join the video session now (10 minutes early to 60 minutes late)."""
    try:
        window = await asyncio.to_thread(booking_service.get_join_window, principal, booking_id)
        return JoinWindowResponse(**window)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/accept", response_model=BookingResponse)
async def accept_booking(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.accept_booking, principal, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.reject_booking, principal, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/{booking_id}/reschedule",
    response_model=BookingResponse,
    responses={404: {"description": "Booking not found"}, 409: {"description": "Time conflict"}},
)
async def reschedule_booking(
    booking_id: str = booking_id_path(),
    payload: BookingReschedule = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Propose a new start time; the other participant must accept it."""
    try:
        booking = await asyncio.to_thread(
            booking_service.reschedule_booking, principal, booking_id, payload.timestamp
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: str = booking_id_path(),
    cancel_data: Optional[BookingCancel] = Body(None),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking,
            principal,
            booking_id,
            cancel_data.reason if cancel_data else None,
        )
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(
    booking_id: str = booking_id_path(),
    principal: UserPrincipal = Depends(get_current_principal),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.complete_booking, principal, booking_id)
        return BookingResponse.model_validate(booking)
    except DomainException as e:
        handle_domain_exception(e)
