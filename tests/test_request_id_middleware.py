from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.core.app_factory import create_app
from app.core.config import RateLimitSettings, Settings
from app.main import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_preserves_incoming_request_id_header(client: TestClient):
    incoming_id = "test-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": incoming_id})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == incoming_id


def test_generates_request_id_when_missing(client: TestClient):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_request_id_present_on_rate_limited_routes():
    fresh_app = create_app(
        Settings(rate_limit=RateLimitSettings(backend="memory", ip=1)),
        store=InMemoryRateLimitStore(),
    )
    client = TestClient(fresh_app)

    allowed = client.get("/", headers={"X-Request-ID": "req-root"})
    assert allowed.status_code == 200
    assert allowed.headers.get("X-Request-ID") == "req-root"

    rejected = client.get("/", headers={"X-Request-ID": "req-root-2"})
    assert rejected.status_code == 429
    assert rejected.headers.get("X-Request-ID") == "req-root-2"
