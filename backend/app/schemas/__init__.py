# backend/app/schemas/__init__.py
"""
Pydantic schemas for the TutorBook API.
"""

from .booking import (
    AvailableSlotsResponse,
    BookingCancel,
    BookingCountsResponse,
    BookingCreate,
    BookingEligibilityResponse,
    BookingEventResponse,
    BookingListResponse,
    BookingReschedule,
    BookingResponse,
    BookingWithUsersResponse,
    BusySlotResponse,
    JoinWindowResponse,
    ParticipantResponse,
)
from .message import (
    MarkMessagesReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from .payment import (
    PaymentFailedRequest,
    PaymentInitiateRequest,
    PaymentListResponse,
    PaymentRefundRequest,
    PaymentResponse,
    PaymentSucceededRequest,
)
from .recurring_rule import (
    ProcessRecurringRulesResponse,
    RecurringRuleCreate,
    RecurringRuleListResponse,
    RecurringRuleResponse,
    RecurringRuleScheduleUpdate,
    RecurringRuleStatusUpdate,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingReschedule",
    "BookingCancel",
    "BookingEventResponse",
    "BookingResponse",
    "BookingListResponse",
    "BookingCountsResponse",
    "BookingEligibilityResponse",
    "BusySlotResponse",
    "AvailableSlotsResponse",
    "ParticipantResponse",
    "BookingWithUsersResponse",
    "JoinWindowResponse",
    # Messages
    "SendMessageRequest",
    "MessageResponse",
    "MessageListResponse",
    "MarkMessagesReadResponse",
    "UnreadCountResponse",
    # Payments
    "PaymentInitiateRequest",
    "PaymentSucceededRequest",
    "PaymentFailedRequest",
    "PaymentRefundRequest",
    "PaymentResponse",
    "PaymentListResponse",
    # Recurring rules
    "RecurringRuleCreate",
    "RecurringRuleScheduleUpdate",
    "RecurringRuleStatusUpdate",
    "RecurringRuleResponse",
    "RecurringRuleListResponse",
    "ProcessRecurringRulesResponse",
]
