# tests/test_api.py
"""HTTP smoke tests that never reach MongoDB (lifespan is not started)."""
from datetime import date

import pytest
from fastapi.testclient import TestClient

from rental_app.core.security import create_access_token
from rental_app.main import app
from rental_app.models.transaction import Transaction
from rental_app.models.user import User


@pytest.fixture
def client():
    return TestClient(app)


def test_root_is_public(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "X-Request-ID" in response.headers


def test_openapi_schema_builds(client):
    response = client.get("/openapi.json")
    assert response.status_code == 200
    paths = response.json()["paths"]
    assert "/api/v1/transactions/{transaction_id}/status" in paths
    assert "/api/v1/items/{item_id}/stock" in paths
    assert "/api/v1/promotions/validate" in paths


@pytest.mark.parametrize("path", [
    "/api/v1/transactions/",
    "/api/v1/items/",
    "/api/v1/reports/summary",
    "/api/v1/auth/me",
])
def test_protected_paths_require_token(client, path):
    response = client.get(path)
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated"}


def test_invalid_token_rejected(client):
    response = client.get("/api/v1/transactions/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_token_without_subject_rejected(client):
    token = create_access_token({"role": "admin"})
    response = client.get("/api/v1/transactions/", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_transaction_create_schema_rejects_reversed_dates():
    with pytest.raises(ValueError):
        Transaction.Create(
            start_date=date(2024, 12, 13), end_date=date(2024, 12, 10),
            lines=[{"item_id": "x", "qty": 1}],
        )


def test_transaction_response_converts_stored_datetimes():
    response = Transaction.Response.model_validate({
        "id": "1", "code": "TRX20241210001", "user_id": "u", "booked_at": "2024-12-09T10:00:00",
        "start_date": "2024-12-10T00:00:00", "end_date": "2024-12-13T00:00:00", "total_days": 3,
        "lines": [], "subtotal": 300000, "discount": 0, "late_fee": 0, "total": 300000,
        "status": "menunggu_pembayaran", "created_at": "2024-12-09T10:00:00", "updated_at": "2024-12-09T10:00:00",
    })
    assert response.start_date == date(2024, 12, 10)
    assert response.end_date == date(2024, 12, 13)


def test_password_change_requires_a_new_password():
    with pytest.raises(ValueError):
        User.PasswordChange(current_password="rahasia123", new_password="rahasia123")
