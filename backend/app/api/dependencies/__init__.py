# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_principal, require_service_principal
from .database import get_db
from .services import (
    get_availability_service,
    get_booking_service,
    get_conflict_checker,
    get_message_service,
    get_payment_service,
    get_recurring_rule_service,
)

__all__ = [
    # Auth
    "get_current_principal",
    "require_service_principal",
    # Database
    "get_db",
    # Services
    "get_conflict_checker",
    "get_booking_service",
    "get_availability_service",
    "get_payment_service",
    "get_recurring_rule_service",
    "get_message_service",
]
