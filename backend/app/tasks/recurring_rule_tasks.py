# backend/app/tasks/recurring_rule_tasks.py
"""
Celery tasks for recurring rules.
"""

import logging
from typing import Dict

from app.database import get_db
from app.services.recurring_rule_service import RecurringRuleService
from app.tasks.booking_tasks import JOB_PRINCIPAL, typed_task
from app.tasks.celery_app import BaseTask

logger = logging.getLogger(__name__)


@typed_task(base=BaseTask, name="app.tasks.recurring_rule_tasks.process_recurring_rules", bind=True)
def process_recurring_rules(self: BaseTask) -> Dict[str, int]:
    """
    Weekly materializer: create next week's booking for every active rule.

    Safe to re-run within a week; rules already materialized are skipped.
    """
    db = next(get_db())
    try:
        result = RecurringRuleService(db).process_recurring_rules(JOB_PRINCIPAL)
        if result["error_count"]:
            logger.warning(f"{result['error_count']} recurring rules failed to materialize")
        return result
    finally:
        db.close()
