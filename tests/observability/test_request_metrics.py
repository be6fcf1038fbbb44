from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from apicore.observability import metric_method_label, metric_status_label


def _request_count(method: str, path: str, status_code: str) -> float:
    value = REGISTRY.get_sample_value(
        "apicore_http_requests_total",
        {"method": method, "path": path, "status_code": status_code},
    )
    return value or 0.0


def test_metrics_use_route_template_not_raw_path(client):
    before = _request_count("GET", "/users/{user_id}", "401")

    client.get("/users/12345")
    client.get("/users/67890")

    assert _request_count("GET", "/users/{user_id}", "401") == before + 2
    assert _request_count("GET", "/users/12345", "401") == 0.0


def test_unmatched_paths_share_one_label(client):
    before = _request_count("GET", "/_unmatched", "404")

    client.get("/definitely/not/a/route")

    assert _request_count("GET", "/_unmatched", "404") == before + 1


def test_metrics_disabled_records_nothing(make_app):
    before = _request_count("GET", "/ping", "200")

    with TestClient(make_app(MIDDLEWARE_REQUEST_METRICS=False)) as tc:
        assert tc.get("/ping").status_code == 200

    assert _request_count("GET", "/ping", "200") == before


@pytest.mark.parametrize(
    ("method", "label"),
    [("get", "GET"), ("DELETE", "DELETE"), ("PROPFIND", "OTHER"), (None, "OTHER")],
)
def test_method_label_is_bounded(method, label):
    assert metric_method_label(method) == label


@pytest.mark.parametrize(("status_code", "label"), [(200, "200"), (599, "599"), (42, "000"), (700, "000")])
def test_status_label_is_bounded(status_code, label):
    assert metric_status_label(status_code) == label
