# backend/app/tasks/__init__.py
"""
Celery tasks package for TutorBook.

This package contains the scheduled booking jobs:
- Weekly recurring rule materialization
- Auto-completion of finished sessions
"""

from app.tasks.booking_tasks import auto_complete_bookings
from app.tasks.celery_app import BaseTask, celery_app
from app.tasks.recurring_rule_tasks import process_recurring_rules

__all__ = [
    "BaseTask",
    "celery_app",
    "auto_complete_bookings",
    "process_recurring_rules",
]
