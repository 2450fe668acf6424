# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.conflict_checker import ConflictChecker
from ...services.message_service import MessageService
from ...services.payment_service import PaymentService
from ...services.recurring_rule_service import RecurringRuleService
from .database import get_db

logger = logging.getLogger(__name__)


def get_conflict_checker(db: Session = Depends(get_db)) -> ConflictChecker:
    return ConflictChecker(db)


def get_booking_service(
    db: Session = Depends(get_db),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> BookingService:
    """
    Get booking service instance.

    Args:
        db: Database session
        conflict_checker: Shared conflict checker for this request

    Returns:
        BookingService instance
    """
    return BookingService(db, conflict_checker=conflict_checker)


def get_availability_service(
    db: Session = Depends(get_db),
    conflict_checker: ConflictChecker = Depends(get_conflict_checker),
) -> AvailabilityService:
    return AvailabilityService(db, conflict_checker=conflict_checker)


def get_payment_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> PaymentService:
    return PaymentService(db, booking_service=booking_service)


def get_recurring_rule_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> RecurringRuleService:
    return RecurringRuleService(db, booking_service=booking_service)


def get_message_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> MessageService:
    return MessageService(db, booking_service=booking_service)
