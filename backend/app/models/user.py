# backend/app/models/user.py
"""
User model for the TutorBook backend.

Users are owned by the identity provider; this table mirrors the fields the
booking engine needs: who a user is, how to address them, and their role.
"""

import logging

from sqlalchemy import CheckConstraint, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    A student, tutor or admin.

    Attributes:
        id: ULID primary key
        email: Unique contact address
        name: Display name
        role: student, tutor or admin
        created_at: Account creation timestamp
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String, unique=True, index=True, nullable=True)
    name = Column(String(100), nullable=True)
    role = Column(String(20), nullable=False, default=RoleName.STUDENT.value)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bookings_as_student = relationship(
        "Booking", foreign_keys="Booking.from_user_id", back_populates="student"
    )
    bookings_as_tutor = relationship("Booking", foreign_keys="Booking.to_user_id", back_populates="tutor")

    __table_args__ = (
        CheckConstraint("role IN ('student', 'tutor', 'admin')", name="ck_users_role"),
    )

    @property
    def is_tutor(self) -> bool:
        return self.role == RoleName.TUTOR.value

    @property
    def is_student(self) -> bool:
        return self.role == RoleName.STUDENT.value

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} role={self.role}>"
