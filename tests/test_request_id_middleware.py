from __future__ import annotations

from fastapi.testclient import TestClient

from app.core.config import LogSettings


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/api/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    generated = resp.headers.get("X-Request-ID")
    assert generated
    assert isinstance(generated, str)
    assert len(generated) > 0

    duration = resp.headers.get("X-Request-Duration-ms")
    assert duration is not None
    assert float(duration) >= 0


def test_error_body_echoes_request_id(client: TestClient):
    resp = client.get("/api/users/999", headers={"X-Request-ID": "req-404"})

    assert resp.status_code == 404
    assert resp.json()["request_id"] == "req-404"


def test_success_body_reports_response_time(client: TestClient):
    resp = client.get("/api/health/live")

    body = resp.json()
    assert body["success"] is True
    assert body["response_time_ms"] >= 0


def test_custom_request_id_header(make_settings):
    from app.core.app_factory import create_app

    app = create_app(make_settings(log=LogSettings(level="WARNING", request_id_header="X-Correlation-ID")))
    client = TestClient(app)

    resp = client.get("/api/health", headers={"X-Correlation-ID": "corr-1"})

    assert resp.headers.get("X-Correlation-ID") == "corr-1"
