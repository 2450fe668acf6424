# backend/app/tasks/beat_schedule.py
"""
Celery Beat schedule configuration for TutorBook.

All crontab expressions are evaluated in UTC.
"""

from datetime import timedelta
from typing import Any

from celery.schedules import crontab

from app.core.config import settings

CELERYBEAT_SCHEDULE: dict[str, dict[str, Any]] = {
    # Weekly materializer - Monday 00:00 UTC
    "process-recurring-rules": {
        "task": "app.tasks.recurring_rule_tasks.process_recurring_rules",
        "schedule": crontab(minute=0, hour=0, day_of_week=1),
        "options": {"queue": "bookings", "priority": 6},
    },
    "auto-complete-bookings": {
        "task": "app.tasks.booking_tasks.auto_complete_bookings",
        "schedule": timedelta(minutes=settings.auto_complete_interval_minutes),
        "options": {"queue": "bookings", "priority": 5},
    },
}

SCHEDULE_CONFIG: dict[str, dict[str, dict[str, Any]]] = {
    "development": {
        "auto-complete-bookings": {
            "task": "app.tasks.booking_tasks.auto_complete_bookings",
            "schedule": timedelta(minutes=1),
            "options": {"queue": "bookings", "priority": 5},
        },
    },
}


def get_beat_schedule(environment: str = "production") -> dict[str, dict[str, Any]]:
    """
    Get the beat schedule for the specified environment.

    Args:
        environment: The environment name (production, development, testing)

    Returns:
        Mapping of task name to Celery beat configuration dict
    """
    base: dict[str, dict[str, Any]] = dict(CELERYBEAT_SCHEDULE)
    overrides = SCHEDULE_CONFIG.get(environment)
    if overrides:
        base.update(overrides)
    return base
