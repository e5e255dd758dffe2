from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from quotaguard.core.app_factory import create_app


@pytest.fixture
def client(enforcer) -> TestClient:
    return TestClient(create_app(enforcer=enforcer, configure_logs=False))


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


def test_request_id_is_echoed_in_error_body(client: TestClient):
    body = {"name": "checkout", "limit": 0, "duration": 1}
    resp = client.post("/v1/decisions", json=body, headers={"X-Request-ID": "req-err-1"})

    assert resp.status_code == 400
    assert resp.json()["error"]["request_id"] == "req-err-1"
