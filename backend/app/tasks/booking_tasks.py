# backend/app/tasks/booking_tasks.py
"""
Celery tasks for the booking lifecycle.
"""

import logging
from typing import Any, Callable, Dict, TypeVar, cast

from app.database import get_db
from app.principal import SCOPE_BOOKING_JOBS, ServicePrincipal
from app.services.booking_service import BookingService
from app.tasks.celery_app import BaseTask, celery_app

logger = logging.getLogger(__name__)

TaskCallable = TypeVar("TaskCallable", bound=Callable[..., Any])

JOB_PRINCIPAL = ServicePrincipal(client_id="celery-beat", scopes=(SCOPE_BOOKING_JOBS,))


def typed_task(*task_args: Any, **task_kwargs: Any) -> Callable[[TaskCallable], TaskCallable]:
    return cast(Callable[[TaskCallable], TaskCallable], celery_app.task(*task_args, **task_kwargs))


@typed_task(base=BaseTask, name="app.tasks.booking_tasks.auto_complete_bookings", bind=True)
def auto_complete_bookings(self: BaseTask) -> Dict[str, int]:
    """
    Complete confirmed bookings whose session has ended.

    Returns:
        ``{completed_count, skipped_count, total_checked}``
    """
    db = next(get_db())
    try:
        return BookingService(db).auto_complete_finished_bookings(JOB_PRINCIPAL)
    finally:
        db.close()
