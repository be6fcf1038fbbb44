from __future__ import annotations

from unittest.mock import patch

from conftest import StubEngine, build_test_config
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from apicore import create_app
from apicore.hooks import LifecycleHooks
from apicore.registry import ServiceRegistry
from apicore.version import APP_VERSION


def test_banner_ping_and_teapot(client):
    banner = client.get("/")
    assert banner.status_code == 200
    assert banner.text == "ApiCore API is available"

    assert client.get("/ping").json() == {"code": "pong"}

    teapot = client.get("/teapot")
    assert teapot.status_code == 418
    assert teapot.json()["code"] == "IM_A_TEAPOT"


def test_server_info_reports_normalized_upload_limit(make_app):
    with TestClient(make_app(SERVER_NAME="Acme", MAX_UPLOAD_FILESIZE_MB=5)) as client:
        info = client.get("/server/info").json()

    assert info["name"] == "Acme"
    assert info["version"] == APP_VERSION
    assert info["environment"] == "development"
    assert info["max_upload_filesize_mb"] == 50


def test_negative_upload_limit_starts_with_floor(make_app):
    with TestClient(make_app(MAX_UPLOAD_FILESIZE_MB=-5)) as client:
        info = client.get("/server/info").json()

    assert info["max_upload_filesize_mb"] == 50


def test_health_endpoints(client):
    assert client.get("/health/live").json() == {"status": "ok"}

    ready = client.get("/health/ready")
    assert ready.status_code == 200
    assert ready.json()["checks"]["database"]["ok"] is True


def test_readiness_degrades_when_database_fails(tmp_path):
    def failing_handler(_statement, _params):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    with patch("apicore.database.create_engine", return_value=StubEngine(failing_handler)):
        app = create_app(build_test_config(STORAGE_ROOT=str(tmp_path)))

    with TestClient(app) as client:
        ready = client.get("/health/ready")

    assert ready.status_code == 503
    body = ready.json()
    assert body["status"] == "degraded"
    assert body["checks"]["database"] == {"ok": False, "detail": "database connection failed"}


def test_metrics_endpoint_follows_middleware_setting(make_app):
    with TestClient(make_app(MIDDLEWARE_REQUEST_METRICS=True)) as client:
        client.get("/ping")
        metrics = client.get("/metrics")

    assert metrics.status_code == 200
    assert "apicore_http_requests_total" in metrics.text

    with TestClient(make_app(MIDDLEWARE_REQUEST_METRICS=False)) as client:
        assert client.get("/metrics").status_code == 404


def test_errors_carry_request_id(client):
    response = client.get("/users/me", headers={"X-Request-Id": "trace-1"})

    assert response.status_code == 401
    assert response.headers["X-Request-Id"] == "trace-1"
    assert response.json()["request_id"] == "trace-1"


def test_missing_service_is_service_unavailable(make_app):
    app = make_app()
    app.state.registry = ServiceRegistry()

    with TestClient(app) as client:
        response = client.post("/auth/login", json={"email": "a@example.com", "password": "whatever1"})

    assert response.status_code == 503
    assert response.json()["code"] == "SERVICE_UNAVAILABLE"


def test_unhandled_exception_is_internal_error(make_app):
    def exploding_hook(user):
        raise RuntimeError("hook failed")

    app = make_app(hooks=LifecycleHooks(user_did_register=[exploding_hook]))

    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/users", json={"email": "jane@example.com", "password": "correct-horse"})

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
