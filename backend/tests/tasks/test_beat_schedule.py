"""Tests for the Celery beat schedule."""

from datetime import timedelta

from celery.schedules import crontab
import pytest

from app.tasks.beat_schedule import CELERYBEAT_SCHEDULE, get_beat_schedule


@pytest.mark.unit
class TestBeatSchedule:
    def test_materializer_runs_monday_midnight_utc(self) -> None:
        entry = CELERYBEAT_SCHEDULE["process-recurring-rules"]
        assert entry["task"] == "app.tasks.recurring_rule_tasks.process_recurring_rules"
        assert entry["schedule"] == crontab(minute=0, hour=0, day_of_week=1)

    def test_auto_complete_interval(self) -> None:
        entry = get_beat_schedule("production")["auto-complete-bookings"]
        assert entry["task"] == "app.tasks.booking_tasks.auto_complete_bookings"
        assert entry["schedule"] == timedelta(minutes=5)

    def test_development_runs_auto_complete_every_minute(self) -> None:
        schedule = get_beat_schedule("development")
        assert schedule["auto-complete-bookings"]["schedule"] == timedelta(minutes=1)
        assert "process-recurring-rules" in schedule

    def test_base_schedule_not_mutated_by_overrides(self) -> None:
        get_beat_schedule("development")
        assert CELERYBEAT_SCHEDULE["auto-complete-bookings"]["schedule"] == timedelta(minutes=5)
