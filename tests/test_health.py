import pytest
from fastapi import status
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.main import app
from app.services import refunds as refund_service


def test_root_returns_ok(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Pi Shop API"


def test_health_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_unknown_route_is_404(client):
    response = client.get("/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_cors_allows_admin_token_header(client):
    response = client.options(
        "/admin/exchange-rate",
        headers={
            "Origin": "https://shop.example",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "x-admin-token",
        },
    )
    assert response.status_code == status.HTTP_200_OK
    assert "x-admin-token" in response.headers["access-control-allow-headers"].lower()


@pytest.fixture
def lenient_client(client):
    # unhandled errors surface as responses instead of being re-raised into the test
    return TestClient(app, raise_server_exceptions=False)


def test_unhandled_database_error_returns_json_500(lenient_client, monkeypatch):
    def broken(db, refund_id):
        raise OperationalError("SELECT 1", {}, Exception("db down"))

    monkeypatch.setattr(refund_service, "get_refund_status", broken)

    response = lenient_client.get("/refund/status", params={"refund_id": "REF_1"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.headers["content-type"].startswith("application/json")
    assert response.json() == {"success": False, "error": "Database operation failed"}


def test_unhandled_error_is_logged_and_hidden(lenient_client, monkeypatch, caplog):
    def broken(db, refund_id):
        raise RuntimeError("secret internals")

    monkeypatch.setattr(refund_service, "get_refund_status", broken)

    with caplog.at_level("ERROR", logger="app.startup"):
        response = lenient_client.get("/refund/status", params={"refund_id": "REF_1"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"success": False, "error": "Internal server error"}
    assert "secret internals" not in response.text
    assert any("RuntimeError" in record.getMessage() for record in caplog.records)
