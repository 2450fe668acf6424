# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
"""

from . import bookings, messages, payments, recurring_rules

__all__ = [
    "bookings",
    "messages",
    "payments",
    "recurring_rules",
]
