# backend/app/schemas/booking.py
"""
Booking schemas for the TutorBook backend.

All instants are UTC epoch milliseconds. Calendar dates for slot lookups are
UK-local ``YYYY-MM-DD`` strings.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..core.enums import BookingStatus, BookingType
from ._strict_base import ResponseModel, StrictRequestModel

DATE_ONLY_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class BookingCreate(StrictRequestModel):
    """
    Request a session with another user.

    The caller may be the student or the tutor; the server works out which
    party is which from their roles.
    """

    counterpart_id: str = Field(..., description="The other party of the session")
    timestamp: int = Field(..., description="Session start, UTC epoch milliseconds")
    booking_type: BookingType = Field(..., description="free (15 min) or paid (60 min)")


class BookingReschedule(StrictRequestModel):
    timestamp: int = Field(..., description="Proposed new start, UTC epoch milliseconds")


class BookingCancel(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() or None if v else v


class BookingEventResponse(ResponseModel):
    timestamp: int
    user_id: str
    type: str
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="event_metadata")


class BookingResponse(ResponseModel):
    id: str
    from_user_id: str
    to_user_id: str
    timestamp: int
    end_timestamp: int
    booking_type: BookingType
    status: BookingStatus
    last_action_by_user_id: Optional[str] = None
    recurring_rule_id: Optional[str] = None
    created_at: int
    events: List[BookingEventResponse] = Field(default_factory=list)


class BookingListResponse(ResponseModel):
    items: List[BookingResponse]
    total: int
    page: int
    page_size: int
    has_next: bool


class BookingCountsResponse(ResponseModel):
    active: int
    past: int
    pending: int


class BookingEligibilityResponse(ResponseModel):
    can_create_free: bool
    can_create_paid: bool
    has_active_free_booking: bool


class BusySlotResponse(ResponseModel):
    start: str
    end: str
    whose_busy: str


class AvailableSlotsResponse(ResponseModel):
    date: str
    available_slots: List[str]
    busy_slots: List[BusySlotResponse]


class ParticipantResponse(ResponseModel):
    id: str
    name: str
    email: str


class BookingWithUsersResponse(ResponseModel):
    booking: BookingResponse
    tutor: ParticipantResponse
    student: ParticipantResponse


class JoinWindowResponse(ResponseModel):
    booking_id: str
    can_join: bool
    opens_at: int
    closes_at: int


def validate_date_only(value: str) -> str:
    candidate = value.strip()
    if not DATE_ONLY_REGEX.fullmatch(candidate):
        raise ValueError("date must be a YYYY-MM-DD date-only string")
    return candidate
