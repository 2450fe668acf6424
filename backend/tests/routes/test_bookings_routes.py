"""Route tests for /api/v1/bookings."""

from app.core.enums import BookingStatus, BookingType
from app.core.timezone_utils import utc_now_ms
from app.principal import SCOPE_BOOKING_JOBS, SCOPE_PAYMENT_WEBHOOK
from tests.helpers import HOUR, auth_headers, future_ms, insert_booking, service_headers

BASE = "/api/v1/bookings"


def _create(client, actor, counterpart, timestamp=None, booking_type="free"):
    return client.post(
        BASE,
        json={
            "counterpart_id": counterpart.id,
            "timestamp": timestamp or future_ms(),
            "booking_type": booking_type,
        },
        headers=auth_headers(actor),
    )


class TestAuth:
    def test_requires_token(self, client):
        assert client.get(BASE).status_code == 401

    def test_rejects_garbage_token(self, client):
        response = client.get(BASE, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Could not validate credentials"

    def test_service_token_is_not_a_user(self, client):
        response = client.get(BASE, headers=service_headers(SCOPE_BOOKING_JOBS))
        assert response.status_code == 401


class TestLifecycle:
    def test_create_accept_cancel(self, client, student, tutor):
        timestamp = future_ms()
        response = _create(client, student, tutor, timestamp)
        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["booking_type"] == "free"
        assert body["timestamp"] == timestamp
        assert body["end_timestamp"] == timestamp + 15 * 60_000
        assert body["events"][0]["type"] == "created"
        assert body["events"][0]["metadata"] == {"scheduled_time": timestamp}

        accepted = client.post(f"{BASE}/{body['id']}/accept", headers=auth_headers(tutor))
        assert accepted.status_code == 200
        assert accepted.json()["status"] == "confirmed"

        canceled = client.post(
            f"{BASE}/{body['id']}/cancel", json={"reason": " Ill "}, headers=auth_headers(student)
        )
        assert canceled.status_code == 200
        assert canceled.json()["status"] == "canceled"
        assert canceled.json()["events"][-1]["metadata"] == {"reason": "Ill"}

    def test_cancel_without_body(self, client, student, tutor):
        booking_id = _create(client, student, tutor).json()["id"]
        response = client.post(f"{BASE}/{booking_id}/cancel", headers=auth_headers(tutor))
        assert response.status_code == 200

    def test_reschedule_then_accept(self, client, student, tutor):
        booking_id = _create(client, student, tutor).json()["id"]
        new_time = future_ms(days=8)

        proposed = client.post(
            f"{BASE}/{booking_id}/reschedule",
            json={"timestamp": new_time},
            headers=auth_headers(tutor),
        )
        assert proposed.status_code == 200
        assert proposed.json()["status"] == "awaiting_reschedule"

        accepted = client.post(f"{BASE}/{booking_id}/accept", headers=auth_headers(student))
        assert accepted.json()["status"] == "confirmed"
        assert accepted.json()["timestamp"] == new_time

    def test_complete_is_tutor_only(self, client, db, student, tutor):
        booking = insert_booking(db, student, tutor, future_ms())
        response = client.post(f"{BASE}/{booking.id}/complete", headers=auth_headers(student))
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "TUTOR_ONLY"

        response = client.post(f"{BASE}/{booking.id}/complete", headers=auth_headers(tutor))
        assert response.json()["status"] == "completed"


class TestErrors:
    def test_actor_exclusivity(self, client, student, tutor):
        booking_id = _create(client, student, tutor).json()["id"]
        response = client.post(f"{BASE}/{booking_id}/accept", headers=auth_headers(student))
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ACTOR_EXCLUSIVITY"

    def test_overlap_conflict(self, client, student, other_student, tutor):
        timestamp = future_ms()
        _create(client, student, tutor, timestamp)
        response = _create(client, other_student, tutor, timestamp + 5 * 60_000)
        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "BOOKING_CONFLICT"
        assert detail["message"].startswith("The other user already have a booking at this time.")

    def test_past_time(self, client, student, tutor):
        response = _create(client, student, tutor, utc_now_ms() - HOUR)
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "BOOKING_IN_PAST"

    def test_paid_before_free_trial(self, client, student, tutor):
        response = _create(client, student, tutor, booking_type="paid")
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "BOOKING_NOT_ELIGIBLE"

    def test_invalid_pairing(self, client, student, other_student):
        response = _create(client, student, other_student)
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "INVALID_PAIRING"

    def test_unknown_fields_rejected(self, client, student, tutor):
        response = client.post(
            BASE,
            json={
                "counterpart_id": tutor.id,
                "timestamp": future_ms(),
                "booking_type": "free",
                "status": "confirmed",
            },
            headers=auth_headers(student),
        )
        assert response.status_code == 422

    def test_malformed_booking_id(self, client, student):
        response = client.get(f"{BASE}/not-a-ulid", headers=auth_headers(student))
        assert response.status_code == 422

    def test_missing_booking(self, client, student):
        response = client.get(f"{BASE}/01HF4G12ABCDEF3456789XYZAB", headers=auth_headers(student))
        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "Booking not found"

    def test_non_participant(self, client, student, other_student, tutor):
        booking_id = _create(client, student, tutor).json()["id"]
        response = client.get(f"{BASE}/{booking_id}", headers=auth_headers(other_student))
        assert response.status_code == 403


class TestQueries:
    def test_list_with_filter_and_pagination(self, client, db, student, tutor, other_tutor):
        _create(client, student, tutor)
        insert_booking(db, student, other_tutor, future_ms(days=2), status=BookingStatus.CANCELED)

        everything = client.get(BASE, headers=auth_headers(student)).json()
        assert everything["total"] == 2
        assert everything["has_next"] is False

        pending = client.get(BASE, params={"status": "pending"}, headers=auth_headers(student)).json()
        assert pending["total"] == 1
        assert pending["items"][0]["status"] == "pending"

        first_page = client.get(BASE, params={"per_page": 1}, headers=auth_headers(student)).json()
        assert len(first_page["items"]) == 1
        assert first_page["page_size"] == 1
        assert first_page["has_next"] is True

    def test_counts(self, client, student, tutor):
        _create(client, student, tutor)
        response = client.get(f"{BASE}/counts", headers=auth_headers(student))
        assert response.json() == {"active": 1, "past": 0, "pending": 0}

        response = client.get(f"{BASE}/counts", headers=auth_headers(tutor))
        assert response.json() == {"active": 1, "past": 0, "pending": 1}

    def test_eligibility(self, client, student, tutor):
        response = client.get(
            f"{BASE}/eligibility", params={"other_user_id": tutor.id}, headers=auth_headers(student)
        )
        assert response.status_code == 200
        assert response.json() == {
            "can_create_free": True,
            "can_create_paid": False,
            "has_active_free_booking": False,
        }

    def test_available_slots(self, client, student, tutor):
        response = client.get(
            f"{BASE}/available-slots",
            params={"date": "2030-01-15", "counterpart_id": tutor.id, "booking_type": "paid"},
            headers=auth_headers(student),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["date"] == "2030-01-15"
        assert len(body["available_slots"]) == 133
        assert body["busy_slots"] == []

    def test_available_slots_bad_date(self, client, student, tutor):
        response = client.get(
            f"{BASE}/available-slots",
            params={"date": "15/01/2030", "counterpart_id": tutor.id},
            headers=auth_headers(student),
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_DATE"

    def test_participants(self, client, student, tutor):
        booking_id = _create(client, student, tutor).json()["id"]
        response = client.get(f"{BASE}/{booking_id}/participants", headers=auth_headers(tutor))
        assert response.status_code == 200
        body = response.json()
        assert body["tutor"]["name"] == "Tara Tutor"
        assert body["student"]["id"] == student.id

    def test_join_window_closed_until_near_start(self, client, db, student, tutor):
        booking = insert_booking(db, student, tutor, future_ms(), BookingType.FREE)
        response = client.get(f"{BASE}/{booking.id}/join", headers=auth_headers(student))
        assert response.status_code == 200
        assert response.json()["can_join"] is False


class TestJobs:
    def test_auto_complete_requires_jobs_scope(self, client, student):
        assert client.post(f"{BASE}/jobs/auto-complete", headers=auth_headers(student)).status_code == 403
        response = client.post(
            f"{BASE}/jobs/auto-complete", headers=service_headers(SCOPE_PAYMENT_WEBHOOK)
        )
        assert response.status_code == 403

    def test_auto_complete_finishes_ended_sessions(self, client, db, student, tutor):
        ended = insert_booking(db, student, tutor, utc_now_ms() - 2 * HOUR)
        response = client.post(f"{BASE}/jobs/auto-complete", headers=service_headers(SCOPE_BOOKING_JOBS))
        assert response.status_code == 200
        assert response.json()["completed_count"] == 1
        db.refresh(ended)
        assert ended.status == BookingStatus.COMPLETED.value
