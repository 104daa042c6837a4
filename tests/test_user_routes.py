"""HTTP tests for the /api/users endpoints."""

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from app.core.app_factory import create_app
from app.core.config import LimiterSettings
from app.core.rate_limit import UNKNOWN_CLIENT, get_client_id


def _store(client: TestClient):
    return client.app.state.services.store


class TestGetUser:
    def test_cold_then_warm_read(self, client: TestClient):
        first = client.get("/api/users/1")
        second = client.get("/api/users/1")

        assert first.status_code == 200
        assert second.status_code == 200
        assert first.json()["data"] == {"id": 1, "name": "John Doe", "email": "john@example.com"}
        assert second.json()["data"] == first.json()["data"]
        assert _store(client).lookup_count == 1

        status = client.get("/api/cache/status").json()["data"]
        assert status["hits"] == 1
        assert status["misses"] == 1

    def test_success_envelope_shape(self, client: TestClient):
        body = client.get("/api/users/2").json()

        assert body["success"] is True
        assert isinstance(body["timestamp_ms"], int)
        assert body["response_time_ms"] >= 0
        assert "error" not in body
        assert "code" not in body

    def test_admitted_response_carries_rate_limit_headers(self, client: TestClient):
        client.get("/api/users/1")
        resp = client.get("/api/users/1")

        assert resp.headers["X-RateLimit-Limit"] == "10"
        assert resp.headers["X-RateLimit-Remaining"] == "8"
        assert resp.headers["X-Burst-Limit"] == "5"
        assert resp.headers["X-Burst-Remaining"] == "3"
        assert resp.headers["X-RateLimit-Reset"].endswith("Z")
        assert resp.headers["X-Burst-Reset"].endswith("Z")

    @pytest.mark.parametrize("raw_id", ["abc", "0", "-3"])
    def test_invalid_id_returns_400_without_consuming_budget(self, client: TestClient, raw_id):
        resp = client.get(f"/api/users/{raw_id}")

        assert resp.status_code == 400
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "invalid_request"
        assert body["error"] == "Invalid user ID. Must be a positive integer."
        assert "X-RateLimit-Limit" not in resp.headers

        ok = client.get("/api/users/1")
        assert ok.headers["X-Burst-Remaining"] == "4"

    def test_missing_user_returns_404_and_is_not_cached(self, client: TestClient):
        for _ in range(2):
            resp = client.get("/api/users/999")
            assert resp.status_code == 404
            assert resp.json()["code"] == "not_found"
            assert resp.json()["error"] == "User with ID 999 not found"

        assert _store(client).lookup_count == 2

    def test_missing_user_response_keeps_rate_limit_headers(self, client: TestClient):
        resp = client.get("/api/users/999")

        assert resp.headers["X-RateLimit-Remaining"] == "9"
        assert resp.headers["X-Burst-Remaining"] == "4"


class TestRateLimiting:
    def test_sixth_request_in_burst_window_is_rejected(self, client: TestClient):
        for _ in range(5):
            assert client.get("/api/users/1").status_code == 200

        resp = client.get("/api/users/1")

        assert resp.status_code == 429
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "rate_limited"
        assert body["tier"] == "burst"
        assert body["error"] == "Too many requests in burst window. Please slow down."
        assert 1 <= body["retry_after_s"] <= 10
        assert resp.headers["Retry-After"] == str(body["retry_after_s"])
        assert "X-RateLimit-Remaining" not in resp.headers

    def test_rejection_happens_before_store_access(self, client: TestClient):
        for _ in range(5):
            client.get("/api/users/999")

        resp = client.get("/api/users/999")

        assert resp.status_code == 429
        assert _store(client).lookup_count == 5

    def test_limit_applies_across_user_endpoints(self, client: TestClient):
        for _ in range(5):
            assert client.get("/api/users").status_code == 200

        assert client.post("/api/users", json={"name": "X", "email": "x@example.com"}).status_code == 429

    def test_cache_endpoints_are_not_limited(self, client: TestClient):
        for _ in range(8):
            assert client.get("/api/cache/status").status_code == 200

    def test_disabled_limiter_admits_everything(self, make_settings):
        app = create_app(make_settings(limiter=LimiterSettings(enabled=False)))
        client = TestClient(app)

        for _ in range(8):
            resp = client.get("/api/users/1")
            assert resp.status_code == 200
            assert "X-RateLimit-Limit" not in resp.headers

    def test_headers_can_be_disabled(self, make_settings):
        app = create_app(make_settings(limiter=LimiterSettings(include_headers=False, burst_capacity=1)))
        client = TestClient(app)

        ok = client.get("/api/users/1")
        blocked = client.get("/api/users/1")

        assert "X-RateLimit-Limit" not in ok.headers
        assert blocked.status_code == 429
        assert "Retry-After" not in blocked.headers
        assert blocked.json()["tier"] == "burst"


class TestCreateAndList:
    def test_create_user_returns_201_and_caches_record(self, client: TestClient):
        resp = client.post("/api/users", json={"name": "Test User", "email": "test@example.com"})

        assert resp.status_code == 201
        created = resp.json()["data"]
        assert created == {"id": 4, "name": "Test User", "email": "test@example.com"}

        fetched = client.get("/api/users/4")
        assert fetched.json()["data"] == created
        assert _store(client).lookup_count == 0

    def test_create_user_rejects_missing_fields(self, client: TestClient):
        resp = client.post("/api/users", json={"name": "No Email"})

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "invalid_request"
        assert "email" in body["error"]

    def test_create_user_rejects_empty_name(self, client: TestClient):
        resp = client.post("/api/users", json={"name": "", "email": "a@example.com"})

        assert resp.status_code == 400

    def test_list_users(self, client: TestClient):
        resp = client.get("/api/users")

        assert resp.status_code == 200
        assert [u["id"] for u in resp.json()["data"]] == [1, 2, 3]


class TestClientIdentity:
    def _request(self, client) -> Request:
        scope = {
            "type": "http",
            "method": "GET",
            "path": "/api/users/1",
            "headers": [],
            "query_string": b"",
            "client": client,
        }
        return Request(scope)

    def test_peer_host_is_client_id(self):
        assert get_client_id(self._request(("10.0.0.5", 5000))) == "10.0.0.5"

    def test_missing_peer_maps_to_unknown(self):
        assert get_client_id(self._request(None)) == UNKNOWN_CLIENT

    def test_empty_peer_host_maps_to_unknown(self):
        assert get_client_id(self._request(("", 0))) == UNKNOWN_CLIENT


def test_root_describes_service(client: TestClient):
    body = client.get("/").json()

    assert body["endpoints"]["users"] == "/api/users"


def test_openapi_documents_rate_limited_response(client: TestClient):
    schema = client.get("/openapi.json").json()

    assert "429" in schema["paths"]["/api/users/{user_id}"]["get"]["responses"]
    assert "429" not in schema["paths"]["/api/cache/status"]["get"]["responses"]
