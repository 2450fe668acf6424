# backend/app/routes/v1/messages.py
"""
Booking chat routes - API v1

Endpoints:
    GET /bookings/{booking_id} - Messages of a booking, oldest first
    POST /bookings/{booking_id} - Send a message
    POST /bookings/{booking_id}/read - Mark every message as read
    GET /bookings/{booking_id}/unread-count - Messages the caller has not seen
"""

import asyncio
import logging

from fastapi import APIRouter, Body, Depends, status
from fastapi.params import Path

from ...api.dependencies import get_current_principal, get_message_service
from ...core.exceptions import DomainException
from ...principal import UserPrincipal
from ...schemas.message import (
    MarkMessagesReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
    UnreadCountResponse,
)
from ...services.message_service import MessageService
from .bookings import ULID_PATH_PATTERN, handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages-v1"])


@router.get("/bookings/{booking_id}", response_model=MessageListResponse)
async def get_booking_messages(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: MessageService = Depends(get_message_service),
) -> MessageListResponse:
    try:
        messages = await asyncio.to_thread(service.get_messages, principal, booking_id)
        return MessageListResponse(
            booking_id=booking_id,
            messages=[MessageResponse.model_validate(m) for m in messages],
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/bookings/{booking_id}",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    payload: SendMessageRequest = Body(...),
    principal: UserPrincipal = Depends(get_current_principal),
    service: MessageService = Depends(get_message_service),
) -> MessageResponse:
    try:
        message = await asyncio.to_thread(service.send_message, principal, booking_id, payload.text)
        return MessageResponse.model_validate(message)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/bookings/{booking_id}/read", response_model=MarkMessagesReadResponse)
async def mark_messages_read(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: MessageService = Depends(get_message_service),
) -> MarkMessagesReadResponse:
    try:
        result = await asyncio.to_thread(service.mark_as_read, principal, booking_id)
        return MarkMessagesReadResponse(messages_marked=result.count)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/bookings/{booking_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    booking_id: str = Path(..., description="Booking ULID", pattern=ULID_PATH_PATTERN),
    principal: UserPrincipal = Depends(get_current_principal),
    service: MessageService = Depends(get_message_service),
) -> UnreadCountResponse:
    try:
        count = await asyncio.to_thread(service.get_unread_count, principal, booking_id)
        return UnreadCountResponse(booking_id=booking_id, unread_count=count)
    except DomainException as e:
        handle_domain_exception(e)
