# backend/app/services/recurring_rule_service.py
"""
Recurring Rule Service for the TutorBook backend.

Manages weekly reservations and the weekly materializer that turns each
active rule into next week's booking.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Dict, List, Optional, Union

from sqlalchemy.orm import Session

from ..core.enums import DayOfWeek, RecurringRuleStatus
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..core.timezone_utils import from_epoch_ms, to_epoch_ms, utc_now_ms, week_start_utc
from ..models.recurring_rule import RecurringRule
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import SCOPE_BOOKING_JOBS, ServicePrincipal, UserPrincipal
from ..repositories import RepositoryFactory
from ..repositories.recurring_rule_repository import RecurringRuleRepository
from .base import BaseService
from .booking_service import BookingService, require_service_scope

logger = logging.getLogger(__name__)


def get_next_occurrence_ms(
    day_of_week: Union[DayOfWeek, str], hour_utc: int, minute_utc: int, now_ms: int
) -> int:
    """
    Next instant strictly after ``now_ms`` on the given UTC weekday and time.

    The same weekday always rolls over to the following week.
    """
    now = from_epoch_ms(now_ms)
    days_ahead = DayOfWeek(day_of_week).weekday - now.weekday()
    if days_ahead <= 0:
        days_ahead += 7
    target = (now + timedelta(days=days_ahead)).date()
    return to_epoch_ms(
        datetime(target.year, target.month, target.day, hour_utc, minute_utc, tzinfo=timezone.utc)
    )


def should_create_booking_this_week(last_booking_created_at: Optional[int], now_ms: int) -> bool:
    """False when the rule already produced a booking in the current ISO week."""
    if last_booking_created_at is None:
        return True
    return last_booking_created_at < week_start_utc(now_ms)


def validate_schedule(hour_utc: int, minute_utc: int) -> None:
    if not 0 <= hour_utc <= 23:
        raise ValidationException("Hour must be between 0 and 23", code="INVALID_RECURRING_TIME")
    if not 0 <= minute_utc <= 59:
        raise ValidationException("Minute must be between 0 and 59", code="INVALID_RECURRING_TIME")


class RecurringRuleService(BaseService):
    def __init__(
        self,
        db: Session,
        booking_service: Optional[BookingService] = None,
        repository: Optional[RecurringRuleRepository] = None,
    ):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.repository = repository or RepositoryFactory.create_recurring_rule_repository(db)

    def _get_rule_or_raise(self, rule_id: str) -> RecurringRule:
        rule = self.repository.get_by_id(rule_id, load_relationships=False)
        if not rule:
            raise NotFoundException("Recurring rule not found", code="RECURRING_RULE_NOT_FOUND")
        return rule

    def _ensure_participant(self, rule: RecurringRule, principal: UserPrincipal) -> None:
        if not rule.involves(principal.user_id):
            raise ForbiddenException(
                "Not authorized to access this recurring rule", code="NOT_PARTICIPANT"
            )

    def _ensure_unique(
        self,
        from_user_id: str,
        to_user_id: str,
        day_of_week: str,
        hour_utc: int,
        minute_utc: int,
        exclude_rule_id: Optional[str] = None,
    ) -> None:
        duplicate = self.repository.find_active_duplicate(
            from_user_id, to_user_id, day_of_week, hour_utc, minute_utc, exclude_rule_id=exclude_rule_id
        )
        if duplicate:
            raise ValidationException(
                "A recurring rule with the same schedule already exists",
                code="DUPLICATE_RECURRING_RULE",
                details={"recurring_rule_id": duplicate.id},
            )

    # CRUD

    @BaseService.measure_operation("create_recurring_rule")
    def create_rule(
        self,
        principal: UserPrincipal,
        counterpart_id: str,
        day_of_week: Union[DayOfWeek, str],
        hour_utc: int,
        minute_utc: int,
        now_ms: Optional[int] = None,
    ) -> RecurringRule:
        """
        Reserve a weekly UTC slot between the caller and ``counterpart_id``.

        The student is always stored as the owner (``from_user_id``).
        """
        now = utc_now_ms() if now_ms is None else now_ms
        validate_schedule(hour_utc, minute_utc)
        day = DayOfWeek(day_of_week).value
        with self.transaction():
            student, tutor = self.booking_service.resolve_pair(principal.user_id, counterpart_id)
            self._ensure_unique(student.id, tutor.id, day, hour_utc, minute_utc)
            rule = self.repository.create(
                from_user_id=student.id,
                to_user_id=tutor.id,
                day_of_week=day,
                hour_utc=hour_utc,
                minute_utc=minute_utc,
                status=RecurringRuleStatus.ACTIVE.value,
                created_at=now,
            )
        self.logger.info(f"Recurring rule {rule.id} created: {day} {hour_utc:02d}:{minute_utc:02d} UTC")
        return rule

    @BaseService.measure_operation("update_recurring_rule_schedule")
    def update_schedule(
        self,
        principal: UserPrincipal,
        rule_id: str,
        day_of_week: Union[DayOfWeek, str],
        hour_utc: int,
        minute_utc: int,
    ) -> RecurringRule:
        validate_schedule(hour_utc, minute_utc)
        day = DayOfWeek(day_of_week).value
        with self.transaction():
            rule = self._get_rule_or_raise(rule_id)
            if rule.from_user_id != principal.user_id:
                raise ForbiddenException(
                    "You can only update your own recurring rules", code="NOT_RULE_OWNER"
                )
            if not rule.same_schedule(day, hour_utc, minute_utc):
                self._ensure_unique(
                    rule.from_user_id, rule.to_user_id, day, hour_utc, minute_utc, exclude_rule_id=rule.id
                )
            rule.day_of_week = day
            rule.hour_utc = hour_utc
            rule.minute_utc = minute_utc
        return rule

    @BaseService.measure_operation("update_recurring_rule_status")
    def update_status(
        self, principal: UserPrincipal, rule_id: str, status: Union[RecurringRuleStatus, str]
    ) -> RecurringRule:
        new_status = RecurringRuleStatus(status)
        with self.transaction():
            rule = self._get_rule_or_raise(rule_id)
            self._ensure_participant(rule, principal)
            if new_status == RecurringRuleStatus.ACTIVE and not rule.is_active:
                self._ensure_unique(
                    rule.from_user_id,
                    rule.to_user_id,
                    rule.day_of_week,
                    rule.hour_utc,
                    rule.minute_utc,
                    exclude_rule_id=rule.id,
                )
            rule.status = new_status.value
        self.logger.info(f"Recurring rule {rule.id} set to {rule.status} by {principal.user_id}")
        return rule

    @BaseService.measure_operation("delete_recurring_rule")
    def delete_rule(self, principal: UserPrincipal, rule_id: str) -> None:
        with self.transaction():
            rule = self._get_rule_or_raise(rule_id)
            self._ensure_participant(rule, principal)
            self.repository.delete(rule.id)

    def get_rule(self, principal: UserPrincipal, rule_id: str) -> RecurringRule:
        rule = self._get_rule_or_raise(rule_id)
        if not principal.is_admin:
            self._ensure_participant(rule, principal)
        return rule

    def list_rules_for_user(self, principal: UserPrincipal) -> List[RecurringRule]:
        return self.repository.get_for_user(principal.user_id)

    # Weekly materializer

    @BaseService.measure_operation("process_recurring_rules")
    def process_recurring_rules(
        self, principal: ServicePrincipal, now_ms: Optional[int] = None
    ) -> Dict[str, int]:
        """
        Create next week's booking for every active rule.

        Rules that already produced a booking this ISO week are skipped.
        Each rule commits on its own; failures are logged and counted.

        Returns:
            ``{processed_count, skipped_count, error_count, total_rules}``
        """
        require_service_scope(principal, SCOPE_BOOKING_JOBS)
        now = utc_now_ms() if now_ms is None else now_ms
        rules = self.repository.get_active_rules()

        processed_count = 0
        skipped_count = 0
        error_count = 0

        for rule in rules:
            if not should_create_booking_this_week(rule.last_booking_created_at, now):
                skipped_count += 1
                continue

            start_ms = get_next_occurrence_ms(rule.day_of_week, rule.hour_utc, rule.minute_utc, now)
            try:
                booking = self.booking_service.create_recurring_booking(
                    principal, rule, start_ms, now_ms=now
                )
                processed_count += 1
                self.logger.info(
                    f"Created {booking.booking_type} booking {booking.id} for recurring rule {rule.id}"
                )
            except Exception as e:
                error_count += 1
                self.logger.error(f"Error processing recurring rule {rule.id}: {str(e)}")

        prometheus_metrics.record_job_items("process_recurring_rules", "processed", processed_count)
        prometheus_metrics.record_job_items("process_recurring_rules", "skipped", skipped_count)
        prometheus_metrics.record_job_items("process_recurring_rules", "error", error_count)
        self.logger.info(
            f"Recurring rules processed: {processed_count} created, "
            f"{skipped_count} skipped, {error_count} errors"
        )
        return {
            "processed_count": processed_count,
            "skipped_count": skipped_count,
            "error_count": error_count,
            "total_rules": len(rules),
        }
