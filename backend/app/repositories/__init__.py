# backend/app/repositories/__init__.py
"""
Repository layer for the TutorBook backend.

Key Components:
- BaseRepository: generic CRUD for one model
- RepositoryFactory: creates repository instances for services
- BookingRepository: bookings, pair lookups, listing
- ConflictCheckerRepository: slot-occupying bookings and active rules
- RecurringRuleRepository, PaymentRepository, MessageRepository, UserRepository

Usage:
    from app.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_repository(db)
    bookings = repository.get_pair_bookings(student_id, tutor_id)
"""

from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .conflict_checker_repository import ConflictCheckerRepository
from .factory import RepositoryFactory
from .message_repository import MessageRepository
from .payment_repository import PaymentRepository
from .recurring_rule_repository import RecurringRuleRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "ConflictCheckerRepository",
    "MessageRepository",
    "PaymentRepository",
    "RecurringRuleRepository",
    "RepositoryFactory",
    "UserRepository",
]
