"""Route tests for unversioned infrastructure endpoints."""

from tests.helpers import auth_headers, future_ms


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_metrics_exposes_service_operations(client, student, tutor):
    client.post(
        "/api/v1/bookings",
        json={"counterpart_id": tutor.id, "timestamp": future_ms(), "booking_type": "free"},
        headers=auth_headers(student),
    )
    response = client.get("/metrics")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "tutorbook_service_operations_total" in response.text
    assert "tutorbook_booking_transitions_total" in response.text
