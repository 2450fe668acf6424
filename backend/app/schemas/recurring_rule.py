# backend/app/schemas/recurring_rule.py
"""
Recurring rule schemas.

Schedules are stored in UTC: a weekday name plus hour and minute.
"""

from typing import List, Optional

from pydantic import Field

from ..core.enums import DayOfWeek, RecurringRuleStatus
from ._strict_base import ResponseModel, StrictRequestModel


class RecurringRuleCreate(StrictRequestModel):
    counterpart_id: str = Field(..., description="The other party of the weekly session")
    day_of_week: DayOfWeek
    # Range errors are reported by the service with domain messages
    hour_utc: int
    minute_utc: int


class RecurringRuleScheduleUpdate(StrictRequestModel):
    day_of_week: DayOfWeek
    hour_utc: int
    minute_utc: int


class RecurringRuleStatusUpdate(StrictRequestModel):
    status: RecurringRuleStatus


class RecurringRuleResponse(ResponseModel):
    id: str
    from_user_id: str
    to_user_id: str
    day_of_week: DayOfWeek
    hour_utc: int
    minute_utc: int
    status: RecurringRuleStatus
    last_booking_created_at: Optional[int] = None
    created_at: int


class RecurringRuleListResponse(ResponseModel):
    items: List[RecurringRuleResponse]
    total: int


class ProcessRecurringRulesResponse(ResponseModel):
    processed_count: int
    skipped_count: int
    error_count: int
    total_rules: int
