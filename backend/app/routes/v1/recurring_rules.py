# backend/app/routes/v1/recurring_rules.py
"""
Recurring rule routes - API v1

Endpoints:
    GET / - Rules where the caller is the student or the tutor
    POST / - Reserve a weekly slot with another user
    POST /jobs/process - Run the weekly materializer (service only)
    GET /{rule_id} - One rule
    PATCH /{rule_id}/schedule - Move the weekly slot (owner only)
    PATCH /{rule_id}/status - Pause, resume or cancel
    DELETE /{rule_id} - Delete a rule
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, Response, status
from fastapi.params import Path

from ...api.dependencies import (
    get_current_principal,
    get_recurring_rule_service,
    require_service_principal,
)
from ...core.exceptions import DomainException
from ...principal import SCOPE_BOOKING_JOBS, ServicePrincipal, UserPrincipal
from ...schemas.recurring_rule import (
    ProcessRecurringRulesResponse,
    RecurringRuleCreate,
    RecurringRuleListResponse,
    RecurringRuleResponse,
    RecurringRuleScheduleUpdate,
    RecurringRuleStatusUpdate,
)
from ...services.recurring_rule_service import RecurringRuleService
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recurring-rules-v1"])


@router.get("", response_model=RecurringRuleListResponse)
async def list_recurring_rules(
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> RecurringRuleListResponse:
    rules = await asyncio.to_thread(service.list_rules_for_user, principal)
    return RecurringRuleListResponse(
        items=[RecurringRuleResponse.model_validate(r) for r in rules], total=len(rules)
    )


@router.post("", response_model=RecurringRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_recurring_rule(
    payload: RecurringRuleCreate = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> RecurringRuleResponse:
    """Reserve the same UTC weekday and time every week."""
    try:
        rule = await asyncio.to_thread(
            service.create_rule,
            principal,
            payload.counterpart_id,
            payload.day_of_week,
            payload.hour_utc,
            payload.minute_utc,
        )
        return RecurringRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/jobs/process", response_model=ProcessRecurringRulesResponse)
async def process_recurring_rules(
    principal: ServicePrincipal = Depends(require_service_principal(SCOPE_BOOKING_JOBS)),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> ProcessRecurringRulesResponse:
    """Manual trigger for the weekly materializer."""
    try:
        result = await asyncio.to_thread(service.process_recurring_rules, principal)
        return ProcessRecurringRulesResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/{rule_id}", response_model=RecurringRuleResponse)
async def get_recurring_rule(
    rule_id: str = Path(..., description="Recurring rule ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> RecurringRuleResponse:
    try:
        rule = await asyncio.to_thread(service.get_rule, principal, rule_id)
        return RecurringRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{rule_id}/schedule", response_model=RecurringRuleResponse)
async def update_recurring_rule_schedule(
    rule_id: str = Path(..., description="Recurring rule ULID", pattern=ULID_PATH_PATTERN),
    payload: RecurringRuleScheduleUpdate = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> RecurringRuleResponse:
    try:
        rule = await asyncio.to_thread(
            service.update_schedule,
            principal,
            rule_id,
            payload.day_of_week,
            payload.hour_utc,
            payload.minute_utc,
        )
        return RecurringRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.patch("/{rule_id}/status", response_model=RecurringRuleResponse)
async def update_recurring_rule_status(
    rule_id: str = Path(..., description="Recurring rule ULID", pattern=ULID_PATH_PATTERN),
    payload: RecurringRuleStatusUpdate = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> RecurringRuleResponse:
    try:
        rule = await asyncio.to_thread(service.update_status, principal, rule_id, payload.status)
        return RecurringRuleResponse.model_validate(rule)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recurring_rule(
    rule_id: str = Path(..., description="Recurring rule ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: RecurringRuleService = Depends(get_recurring_rule_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_rule, principal, rule_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except DomainException as e:
        handle_domain_exception(e)
