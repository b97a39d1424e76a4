from fastapi import status

from rentals.monitoring.prometheus_metrics import REGISTRY


def test_health(client):
    response = client.get("/health")

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_metrics_expose_service_operations(client, auth_headers_for, resident, listing):
    client.post(
        "/api/v1/bookings",
        json={
            "property_id": listing.id,
            "check_in": "2026-06-01",
            "check_out": "2026-06-03",
            "guests": 1,
        },
        headers=auth_headers_for(resident),
    )

    response = client.get("/metrics")

    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"].startswith("text/plain")
    assert "rentals_service_operations_total" in response.text
    created = REGISTRY.get_sample_value(
        "rentals_service_operations_total",
        {"service": "BookingService", "operation": "create_booking", "status": "success"},
    )
    assert created is not None and created >= 1


def test_unknown_route_is_problem_json(client):
    response = client.get("/api/v1/nowhere")

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["instance"] == "/api/v1/nowhere"
