# backend/app/schemas/payment.py
"""
Payment schemas.

Amounts are integers in minor currency units (pence for GBP).
"""

from typing import List, Optional

from pydantic import Field

from ..core.enums import PaymentStatus
from ._strict_base import ResponseModel, StrictRequestModel


class PaymentInitiateRequest(StrictRequestModel):
    amount: int = Field(..., gt=0, description="Amount in minor currency units")
    currency: str = Field("gbp", min_length=3, max_length=3)
    stripe_session_id: str = Field(..., min_length=1)


class PaymentSucceededRequest(StrictRequestModel):
    amount: int = Field(..., gt=0)
    currency: str = Field("gbp", min_length=3, max_length=3)
    stripe_payment_intent_id: str = Field(..., min_length=1)


class PaymentFailedRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=500)


class PaymentRefundRequest(StrictRequestModel):
    amount: int = Field(..., gt=0)
    currency: str = Field("gbp", min_length=3, max_length=3)
    stripe_payment_intent_id: str = Field(..., min_length=1)


class PaymentResponse(ResponseModel):
    id: str
    booking_id: str
    user_id: str
    stripe_session_id: str
    stripe_payment_intent_id: Optional[str] = None
    status: PaymentStatus
    amount: int
    currency: str
    failure_reason: Optional[str] = None
    created_at: int
    updated_at: int


class PaymentListResponse(ResponseModel):
    booking_id: str
    payments: List[PaymentResponse]
