"""
Payment model.

One row per checkout session opened for a paid booking. The provider's
webhook callbacks move the row through its statuses; the booking state
machine reacts to the same callbacks.
"""

from typing import TYPE_CHECKING, Optional

import ulid
from sqlalchemy import BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.enums import PaymentStatus
from app.database import Base

if TYPE_CHECKING:
    from app.models.booking import Booking


class Payment(Base):
    """Checkout session and its outcome for a paid booking."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    stripe_session_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    stripe_payment_intent_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    # Minor currency units (pence)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="gbp")
    failure_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Epoch milliseconds
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    __table_args__ = (Index("ix_payments_booking_id", "booking_id"),)

    def __repr__(self) -> str:
        return (
            f"<Payment(booking_id={self.booking_id}, session={self.stripe_session_id}, "
            f"status={self.status}, amount={self.amount} {self.currency})>"
        )
