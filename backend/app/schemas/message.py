# backend/app/schemas/message.py
"""
Schemas for booking chat messages.
"""

from typing import List

from pydantic import Field

from ._strict_base import ResponseModel, StrictRequestModel


class SendMessageRequest(StrictRequestModel):
    """Length and emptiness are checked after trimming by the service."""

    text: str = Field(..., description="Message body")


class MessageResponse(ResponseModel):
    id: str
    booking_id: str
    sender_id: str
    text: str
    timestamp: int
    read_by: List[str] = Field(default_factory=list)


class MessageListResponse(ResponseModel):
    booking_id: str
    messages: List[MessageResponse]


class MarkMessagesReadResponse(ResponseModel):
    """Response after marking messages as read."""

    success: bool = True
    messages_marked: int = Field(..., description="Number of messages marked as read")


class UnreadCountResponse(ResponseModel):
    booking_id: str
    unread_count: int
