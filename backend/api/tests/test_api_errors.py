import pytest
from fastapi.testclient import TestClient

from tenantcms.config import Settings
from tenantcms.db import build_engine
from tenantcms.main import create_app
from tenantcms.responses import GENERIC_MESSAGE

API = "/api/v1"


def _app_with_failing_route(environment):
    settings = Settings(environment=environment, database_url="sqlite://", log_level="CRITICAL", log_format="text")
    app = create_app(settings, engine=build_engine("sqlite://"))

    @app.get(f"{API}/boom")
    def boom():
        raise RuntimeError("could not connect to server at 10.0.0.7:5432 (/var/run/postgresql)")

    return app


def test_unknown_route(client):
    r = client.get(f"{API}/nowhere")
    assert r.status_code == 404
    body = r.json()
    assert body == {"success": False, "error": "Route not found", "code": "NOT_FOUND", "timestamp": body["timestamp"]}


def test_request_validation_is_grouped_by_camel_case_field(client, world):
    r = client.post(f"{API}/admin/stories", json={"title": "", "featuredImageUrl": "x" * 600}, headers=world.alice_h)
    assert r.status_code == 400
    body = r.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"] == "Validation failed"
    assert set(body["errors"]) == {"title", "featuredImageUrl"}


def test_bad_query_parameter(client, world):
    r = client.get(f"{API}/stories", params={"limit": 1000})
    assert r.status_code == 400
    assert "limit" in r.json()["errors"]


def test_internal_error_is_sanitized_in_production():
    with TestClient(_app_with_failing_route("production"), raise_server_exceptions=False) as c:
        r = c.get(f"{API}/boom")
    assert r.status_code == 500
    body = r.json()
    assert body["error"] == GENERIC_MESSAGE
    assert body["code"] == "INTERNAL_ERROR"
    assert "stack" not in body
    assert "10.0.0.7" not in r.text


def test_internal_error_keeps_details_in_development():
    with TestClient(_app_with_failing_route("development"), raise_server_exceptions=False) as c:
        r = c.get(f"{API}/boom")
    assert r.status_code == 500
    body = r.json()
    assert "could not connect" in body["error"]
    assert "RuntimeError" in body["stack"]


@pytest.mark.parametrize("path", ["/healthz", "/readyz"])
def test_health(client, path):
    r = client.get(path)
    assert r.status_code == 200
    assert "RateLimit-Limit" not in r.headers
