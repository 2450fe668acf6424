"""Integration tests for the booking state machine against a real session."""

import pytest

from app.core.enums import BookingStatus, BookingType, RoleName
from app.core.exceptions import (
    ActorExclusivityException,
    BookingConflictException,
    BookingEligibilityException,
    ForbiddenException,
    InvalidPairingException,
    InvalidStateTransitionException,
    NotFoundException,
    PastBookingTimeException,
    RecurringSlotConflictException,
)
from app.services.booking_service import BookingService
from app.services.recurring_rule_service import RecurringRuleService
from tests.helpers import (
    JOBS,
    MINUTE,
    NEXT_MONDAY_1400_UTC,
    NOW,
    TUESDAY_1300_UTC,
    WEBHOOK,
    book,
    completed_free,
    confirmed_free,
    insert_booking,
    principal_for,
    utc_ms,
)

pytestmark = pytest.mark.integration


@pytest.fixture
def service(db) -> BookingService:
    return BookingService(db)


class TestCreateAndAccept:
    def test_first_free_booking_is_confirmed_on_accept(self, db, service, student, tutor):
        tomorrow_10 = utc_ms(2026, 10, 20, 10, 0)
        booking = book(db, student, tutor, tomorrow_10)

        assert booking.status == BookingStatus.PENDING.value
        assert booking.booking_type == BookingType.FREE.value
        assert booking.from_user_id == student.id
        assert booking.to_user_id == tutor.id
        assert booking.last_action_by_user_id == student.id
        assert [e.type for e in booking.events] == ["created"]
        assert booking.events[0].event_metadata == {"scheduled_time": tomorrow_10}

        accepted = service.accept_booking(principal_for(tutor), booking.id, now_ms=NOW)
        assert accepted.status == BookingStatus.CONFIRMED.value
        assert accepted.last_action_by_user_id == tutor.id
        assert accepted.events[-1].event_metadata == {
            "was_reschedule": False,
            "accepted_time": tomorrow_10,
        }

    def test_tutor_can_initiate_and_student_accepts(self, db, service, student, tutor):
        booking = book(db, tutor, student)
        assert booking.from_user_id == student.id
        assert booking.to_user_id == tutor.id
        assert booking.last_action_by_user_id == tutor.id

        accepted = service.accept_booking(principal_for(student), booking.id, now_ms=NOW)
        assert accepted.status == BookingStatus.CONFIRMED.value

    def test_completed_free_trial_unlocks_paid_only(self, db, student, tutor):
        completed_free(db, student, tutor)

        with pytest.raises(BookingEligibilityException) as exc_info:
            book(db, student, tutor, NEXT_MONDAY_1400_UTC, BookingType.FREE)
        assert exc_info.value.details == {"requested_type": "free"}

        paid = book(db, student, tutor, NEXT_MONDAY_1400_UTC, BookingType.PAID)
        assert paid.status == BookingStatus.PENDING.value
        assert paid.booking_type == BookingType.PAID.value

    def test_paid_accept_waits_for_payment(self, db, service, student, tutor):
        completed_free(db, student, tutor)
        paid = book(db, student, tutor, NEXT_MONDAY_1400_UTC, BookingType.PAID)

        accepted = service.accept_booking(principal_for(tutor), paid.id, now_ms=NOW)
        assert accepted.status == BookingStatus.AWAITING_PAYMENT.value

    def test_paid_before_free_trial_rejected(self, db, student, tutor):
        with pytest.raises(BookingEligibilityException) as exc_info:
            book(db, student, tutor, booking_type=BookingType.PAID)
        assert "free meeting must be completed" in exc_info.value.message

    def test_second_free_while_first_active_rejected(self, db, student, tutor):
        book(db, student, tutor)
        with pytest.raises(BookingEligibilityException) as exc_info:
            book(db, student, tutor, NEXT_MONDAY_1400_UTC)
        assert "already an active free meeting" in exc_info.value.message

    def test_canceled_free_trial_can_be_retried(self, db, service, student, tutor):
        first = book(db, student, tutor)
        service.cancel_booking(principal_for(student), first.id, now_ms=NOW)

        retry = book(db, student, tutor, NEXT_MONDAY_1400_UTC)
        assert retry.booking_type == BookingType.FREE.value


class TestPairing:
    def test_students_cannot_book_each_other(self, db, student, other_student):
        with pytest.raises(InvalidPairingException) as exc_info:
            book(db, student, other_student)
        assert exc_info.value.message == "Students cannot book sessions with other students"

    def test_tutors_cannot_book_each_other(self, db, tutor, other_tutor):
        with pytest.raises(InvalidPairingException) as exc_info:
            book(db, tutor, other_tutor)
        assert exc_info.value.message == "Tutors cannot book sessions with other tutors"

    def test_admin_cannot_be_a_party(self, db, admin, tutor):
        with pytest.raises(InvalidPairingException):
            book(db, admin, tutor)

    def test_unknown_counterpart(self, db, student, make_user):
        ghost = make_user()
        db.delete(ghost)
        db.commit()
        with pytest.raises(NotFoundException):
            book(db, student, ghost)


class TestConflicts:
    def test_recurring_rule_reserves_its_slot(self, db, student, tutor):
        completed_free(db, student, tutor)
        RecurringRuleService(db).create_rule(
            principal_for(tutor), student.id, "monday", 14, 0, now_ms=NOW
        )

        with pytest.raises(RecurringSlotConflictException) as exc_info:
            book(db, student, tutor, NEXT_MONDAY_1400_UTC, BookingType.PAID)
        assert "every Monday at 14:00 UTC" in exc_info.value.message

    def test_recurring_check_runs_before_past_guard(self, db, student, tutor):
        RecurringRuleService(db).create_rule(
            principal_for(student), tutor.id, "monday", 9, 0, now_ms=NOW
        )
        earlier_today = utc_ms(2026, 10, 19, 9, 0)
        with pytest.raises(RecurringSlotConflictException):
            book(db, student, tutor, earlier_today)

    def test_other_party_busy_message(self, db, student, other_student, tutor):
        book(db, student, tutor)

        with pytest.raises(BookingConflictException) as exc_info:
            book(db, other_student, tutor, TUESDAY_1300_UTC + 5 * MINUTE)
        error = exc_info.value
        assert error.message == (
            "The other user already have a booking at this time. "
            "Existing booking: Tuesday 20 October 2026 at 14:00. "
            "Please choose a different time."
        )
        assert error.details["conflict_user"] == "The other user"

    def test_own_booking_labelled_you(self, db, student, tutor, other_tutor):
        book(db, student, tutor)

        with pytest.raises(BookingConflictException) as exc_info:
            book(db, student, other_tutor, TUESDAY_1300_UTC + 10 * MINUTE)
        assert exc_info.value.message.startswith("You already have a booking at this time.")

    def test_touching_sessions_do_not_conflict(self, db, student, other_student, tutor):
        book(db, student, tutor)
        follow_on = book(db, other_student, tutor, TUESDAY_1300_UTC + 15 * MINUTE)
        assert follow_on.status == BookingStatus.PENDING.value

    def test_paid_sessions_back_to_back(self, db, student, tutor):
        completed_free(db, student, tutor)
        start = NEXT_MONDAY_1400_UTC + 2 * 60 * MINUTE
        book(db, student, tutor, start, BookingType.PAID)

        second = book(db, student, tutor, start + 60 * MINUTE, BookingType.PAID)
        assert second.status == BookingStatus.PENDING.value

        with pytest.raises(BookingConflictException):
            book(db, student, tutor, start + 59 * MINUTE, BookingType.PAID)

    def test_earlier_start_reaching_into_booking_conflicts(self, db, student, tutor, other_student):
        completed_free(db, other_student, tutor, NEXT_MONDAY_1400_UTC - 24 * 60 * MINUTE)
        book(db, student, tutor)
        with pytest.raises(BookingConflictException):
            book(db, other_student, tutor, TUESDAY_1300_UTC - 30 * MINUTE, BookingType.PAID)

    def test_terminal_bookings_do_not_block(self, db, service, student, other_student, tutor):
        first = book(db, student, tutor)
        service.reject_booking(principal_for(tutor), first.id, now_ms=NOW)

        again = book(db, other_student, tutor)
        assert again.timestamp == TUESDAY_1300_UTC

    def test_past_time_rejected(self, db, student, tutor):
        with pytest.raises(PastBookingTimeException):
            book(db, student, tutor, NOW - 60 * MINUTE)

    def test_now_counts_as_past(self, db, student, tutor):
        with pytest.raises(PastBookingTimeException):
            book(db, student, tutor, NOW)


class TestActorExclusivity:
    def test_proposer_cannot_accept_own_request(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        with pytest.raises(ActorExclusivityException) as exc_info:
            service.accept_booking(principal_for(student), booking.id, now_ms=NOW)
        assert exc_info.value.message == (
            "Cannot accept your own booking request or reschedule proposal. "
            "The other party must accept."
        )

    def test_proposer_cannot_reject_own_request(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        with pytest.raises(ActorExclusivityException):
            service.reject_booking(principal_for(student), booking.id, now_ms=NOW)

    def test_non_participant_forbidden(self, db, service, student, other_student, tutor):
        booking = book(db, student, tutor)
        with pytest.raises(ForbiddenException):
            service.accept_booking(principal_for(other_student), booking.id, now_ms=NOW)


class TestReschedule:
    def test_reschedule_round_trip(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        new_time = TUESDAY_1300_UTC + 2 * 60 * MINUTE

        proposed = service.reschedule_booking(principal_for(tutor), booking.id, new_time, now_ms=NOW)
        assert proposed.status == BookingStatus.AWAITING_RESCHEDULE.value
        assert proposed.timestamp == new_time
        assert proposed.last_action_by_user_id == tutor.id
        assert proposed.events[-1].event_metadata == {
            "old_time": TUESDAY_1300_UTC,
            "new_time": new_time,
            "proposed_by": "tutor",
        }

        with pytest.raises(ActorExclusivityException):
            service.accept_booking(principal_for(tutor), booking.id, now_ms=NOW)

        accepted = service.accept_booking(principal_for(student), booking.id, now_ms=NOW)
        assert accepted.status == BookingStatus.CONFIRMED.value
        assert accepted.events[-1].event_metadata["was_reschedule"] is True

    def test_counter_proposal(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        service.reschedule_booking(
            principal_for(tutor), booking.id, TUESDAY_1300_UTC + 60 * MINUTE, now_ms=NOW
        )
        counter = service.reschedule_booking(
            principal_for(student), booking.id, TUESDAY_1300_UTC + 90 * MINUTE, now_ms=NOW
        )
        assert counter.last_action_by_user_id == student.id
        assert counter.events[-1].event_metadata["proposed_by"] == "student"

        rejected = service.reject_booking(principal_for(tutor), booking.id, now_ms=NOW)
        assert rejected.status == BookingStatus.REJECTED.value
        assert rejected.events[-1].event_metadata == {"was_reschedule": True}

    def test_booking_does_not_conflict_with_itself(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        moved = service.reschedule_booking(
            principal_for(student), booking.id, TUESDAY_1300_UTC + 5 * MINUTE, now_ms=NOW
        )
        assert moved.timestamp == TUESDAY_1300_UTC + 5 * MINUTE

    def test_reschedule_into_other_booking_conflicts(self, db, service, student, other_student, tutor):
        mine = book(db, student, tutor)
        book(db, other_student, tutor, TUESDAY_1300_UTC + 60 * MINUTE)
        with pytest.raises(BookingConflictException):
            service.reschedule_booking(
                principal_for(student), mine.id, TUESDAY_1300_UTC + 55 * MINUTE, now_ms=NOW
            )

    def test_confirmed_booking_cannot_be_rescheduled(self, db, service, student, tutor):
        booking = confirmed_free(db, student, tutor)
        with pytest.raises(InvalidStateTransitionException):
            service.reschedule_booking(
                principal_for(student), booking.id, NEXT_MONDAY_1400_UTC, now_ms=NOW
            )


class TestCancelAndComplete:
    def test_cancel_records_reason(self, db, service, student, tutor):
        booking = confirmed_free(db, student, tutor)
        canceled = service.cancel_booking(principal_for(tutor), booking.id, reason="Ill", now_ms=NOW)
        assert canceled.status == BookingStatus.CANCELED.value
        assert canceled.events[-1].event_metadata == {"reason": "Ill"}

    def test_terminal_booking_cannot_be_canceled(self, db, service, student, tutor):
        booking = completed_free(db, student, tutor)
        with pytest.raises(InvalidStateTransitionException) as exc_info:
            service.cancel_booking(principal_for(student), booking.id, now_ms=NOW)
        assert exc_info.value.details == {"current_status": "completed"}

    def test_completed_booking_cannot_be_accepted(self, db, service, student, tutor):
        booking = completed_free(db, student, tutor)
        with pytest.raises(InvalidStateTransitionException):
            service.accept_booking(principal_for(student), booking.id, now_ms=NOW)

    def test_only_tutor_completes(self, db, service, student, tutor):
        booking = confirmed_free(db, student, tutor)
        with pytest.raises(ForbiddenException) as exc_info:
            service.complete_booking(principal_for(student), booking.id, now_ms=NOW)
        assert exc_info.value.code == "TUTOR_ONLY"

    def test_pending_booking_cannot_be_completed(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        with pytest.raises(InvalidStateTransitionException):
            service.complete_booking(principal_for(tutor), booking.id, now_ms=NOW)

    def test_manual_completion_metadata(self, db, student, tutor):
        booking = completed_free(db, student, tutor)
        assert booking.status == BookingStatus.COMPLETED.value
        assert booking.events[-1].event_metadata == {
            "completed_at": TUESDAY_1300_UTC + 15 * MINUTE,
            "automatic": False,
        }


class TestEventLog:
    def test_each_transition_appends_exactly_one_event(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        snapshots = [[e.to_dict() for e in booking.events]]

        service.reschedule_booking(
            principal_for(tutor), booking.id, TUESDAY_1300_UTC + 60 * MINUTE, now_ms=NOW + MINUTE
        )
        snapshots.append([e.to_dict() for e in booking.events])
        service.accept_booking(principal_for(student), booking.id, now_ms=NOW + 2 * MINUTE)
        snapshots.append([e.to_dict() for e in booking.events])
        service.cancel_booking(principal_for(student), booking.id, now_ms=NOW + 3 * MINUTE)
        snapshots.append([e.to_dict() for e in booking.events])

        for before, after in zip(snapshots, snapshots[1:]):
            assert len(after) == len(before) + 1
            assert after[: len(before)] == before
        assert [e.sequence for e in booking.events] == [0, 1, 2, 3]
        assert [e["type"] for e in snapshots[-1]] == ["created", "rescheduled", "accepted", "canceled"]

    def test_failed_transition_appends_nothing(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        with pytest.raises(ActorExclusivityException):
            service.accept_booking(principal_for(student), booking.id, now_ms=NOW)
        db.expire_all()
        assert len(service.get_booking(principal_for(student), booking.id).events) == 1


class TestAutoComplete:
    def test_finished_free_session_completed_by_system(
        self, db, service, student, other_student, tutor, other_tutor
    ):
        free = confirmed_free(db, student, tutor)
        paid = insert_booking(db, other_student, other_tutor, TUESDAY_1300_UTC, BookingType.PAID)

        result = service.auto_complete_finished_bookings(JOBS, now_ms=TUESDAY_1300_UTC + 15 * MINUTE)

        assert result == {"completed_count": 1, "skipped_count": 1, "total_checked": 2}
        db.refresh(free)
        db.refresh(paid)
        assert free.status == BookingStatus.COMPLETED.value
        assert free.last_action_by_user_id == tutor.id
        assert free.events[-1].event_metadata["automatic"] is True
        assert paid.status == BookingStatus.CONFIRMED.value

    def test_requires_jobs_scope(self, service):
        with pytest.raises(ForbiddenException):
            service.auto_complete_finished_bookings(WEBHOOK, now_ms=NOW)


class TestQueries:
    def test_get_booking_access(self, db, service, student, other_student, tutor, admin):
        booking = book(db, student, tutor)
        assert service.get_booking(principal_for(tutor), booking.id).id == booking.id
        assert service.get_booking(principal_for(admin), booking.id).id == booking.id
        with pytest.raises(ForbiddenException):
            service.get_booking(principal_for(other_student), booking.id)

    def test_missing_booking(self, service, student):
        with pytest.raises(NotFoundException):
            service.get_booking(principal_for(student), "01HF4G12ABCDEF3456789XYZAB")

    def test_list_and_counts(self, db, service, student, tutor, make_user):
        pending = book(db, student, tutor)
        old_tutor = make_user(RoleName.TUTOR)
        insert_booking(
            db, student, old_tutor, NOW - 24 * 60 * MINUTE, status=BookingStatus.COMPLETED
        )

        items, total = service.list_user_bookings(principal_for(student))
        assert total == 2
        assert items[0].id == pending.id

        only_pending, pending_total = service.list_user_bookings(
            principal_for(student), status=BookingStatus.PENDING
        )
        assert pending_total == 1
        assert only_pending[0].id == pending.id

        assert service.get_user_booking_counts(principal_for(student), now_ms=NOW) == {
            "active": 1,
            "past": 1,
            "pending": 0,
        }
        assert service.get_user_booking_counts(principal_for(tutor), now_ms=NOW) == {
            "active": 1,
            "past": 0,
            "pending": 1,
        }

    def test_verify_participant(self, db, service, student, other_student, tutor):
        booking = book(db, student, tutor)
        result = service.verify_participant(booking.id, student.id)
        assert result["booking"].id == booking.id
        assert result["tutor"] == {"id": tutor.id, "name": "Tara Tutor", "email": tutor.email}
        assert result["student"]["name"] == "Sam Student"

        with pytest.raises(ForbiddenException):
            service.verify_participant(booking.id, other_student.id)

    def test_join_window(self, db, service, student, tutor):
        booking = confirmed_free(db, student, tutor)
        window = service.get_join_window(
            principal_for(student), booking.id, now_ms=TUESDAY_1300_UTC - 5 * MINUTE
        )
        assert window == {
            "booking_id": booking.id,
            "can_join": True,
            "opens_at": TUESDAY_1300_UTC - 10 * MINUTE,
            "closes_at": TUESDAY_1300_UTC + 60 * MINUTE,
        }
        too_early = service.get_join_window(principal_for(tutor), booking.id, now_ms=NOW)
        assert too_early["can_join"] is False

    def test_pending_booking_cannot_be_joined(self, db, service, student, tutor):
        booking = book(db, student, tutor)
        window = service.get_join_window(principal_for(student), booking.id, now_ms=TUESDAY_1300_UTC)
        assert window["can_join"] is False
