# backend/app/repositories/recurring_rule_repository.py
"""
RecurringRule Repository for the TutorBook backend.
"""

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import RecurringRuleStatus
from ..core.exceptions import RepositoryException
from ..models.recurring_rule import RecurringRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class RecurringRuleRepository(BaseRepository[RecurringRule]):
    def __init__(self, db: Session):
        super().__init__(db, RecurringRule)

    def get_active_rules(self) -> List[RecurringRule]:
        """Every active rule, oldest first, for the weekly materializer."""
        try:
            return (
                self.db.query(RecurringRule)
                .filter(RecurringRule.status == RecurringRuleStatus.ACTIVE.value)
                .order_by(RecurringRule.created_at, RecurringRule.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting active recurring rules: {str(e)}")
            raise RepositoryException(f"Failed to get active recurring rules: {str(e)}")

    def get_for_user(self, user_id: str) -> List[RecurringRule]:
        """Rules where the user is the student owner or the tutor."""
        try:
            return (
                self.db.query(RecurringRule)
                .filter(or_(RecurringRule.from_user_id == user_id, RecurringRule.to_user_id == user_id))
                .order_by(RecurringRule.created_at.desc(), RecurringRule.id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting recurring rules for user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get recurring rules: {str(e)}")

    def find_active_duplicate(
        self,
        from_user_id: str,
        to_user_id: str,
        day_of_week: str,
        hour_utc: int,
        minute_utc: int,
        exclude_rule_id: Optional[str] = None,
    ) -> Optional[RecurringRule]:
        """An active rule for the same pair and schedule, other than ``exclude_rule_id``."""
        try:
            query = self.db.query(RecurringRule).filter(
                RecurringRule.from_user_id == from_user_id,
                RecurringRule.to_user_id == to_user_id,
                RecurringRule.day_of_week == day_of_week,
                RecurringRule.hour_utc == hour_utc,
                RecurringRule.minute_utc == minute_utc,
                RecurringRule.status == RecurringRuleStatus.ACTIVE.value,
            )
            if exclude_rule_id:
                query = query.filter(RecurringRule.id != exclude_rule_id)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking duplicate recurring rule: {str(e)}")
            raise RepositoryException(f"Failed to check duplicate recurring rule: {str(e)}")
