# backend/app/models/recurring_rule.py
"""
Recurring rule model.

A weekly reservation between a student (the owner) and a tutor at a fixed
UTC day/hour/minute. The weekly materializer turns each active rule into one
booking per ISO week and stamps ``last_booking_created_at``.
"""

from sqlalchemy import BigInteger, CheckConstraint, Column, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship
import ulid

from ..core.enums import RecurringRuleStatus
from ..database import Base


class RecurringRule(Base):
    __tablename__ = "recurring_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    from_user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    to_user_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(String(10), nullable=False)
    hour_utc = Column(Integer, nullable=False)
    minute_utc = Column(Integer, nullable=False)
    status = Column(String(10), nullable=False, default=RecurringRuleStatus.ACTIVE.value)
    last_booking_created_at = Column(BigInteger, nullable=True)
    created_at = Column(BigInteger, nullable=False)

    student = relationship("User", foreign_keys=[from_user_id])
    tutor = relationship("User", foreign_keys=[to_user_id])

    __table_args__ = (
        Index("ix_recurring_rules_pair", "from_user_id", "to_user_id"),
        Index("ix_recurring_rules_status", "status"),
        CheckConstraint("hour_utc >= 0 AND hour_utc <= 23", name="ck_recurring_rules_hour"),
        CheckConstraint("minute_utc >= 0 AND minute_utc <= 59", name="ck_recurring_rules_minute"),
        CheckConstraint(
            "status IN ('active', 'paused', 'canceled')", name="ck_recurring_rules_status"
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status == RecurringRuleStatus.ACTIVE.value

    def involves(self, user_id: str) -> bool:
        return user_id in (self.from_user_id, self.to_user_id)

    def same_schedule(self, day_of_week: str, hour_utc: int, minute_utc: int) -> bool:
        return (
            self.day_of_week == day_of_week
            and self.hour_utc == hour_utc
            and self.minute_utc == minute_utc
        )

    def __repr__(self) -> str:
        return (
            f"<RecurringRule {self.id}: {self.day_of_week} {self.hour_utc:02d}:{self.minute_utc:02d} UTC "
            f"student={self.from_user_id} tutor={self.to_user_id} status={self.status}>"
        )
