"""Tests for route templates and audit resource naming in the telemetry middleware."""

from types import SimpleNamespace

import pytest
from starlette.requests import Request

from designcoach.api.middleware.telemetry import resource_id_for, resource_type_for, route_template


def _request(path: str, route_path: str | None) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "scheme": "http",
        "server": ("test", 80),
        "root_path": "",
        "path": path,
        "query_string": b"",
        "headers": [],
    }
    if route_path is not None:
        scope["route"] = SimpleNamespace(path=route_path)
    return Request(scope)


@pytest.mark.parametrize(
    "route_path",
    ["/api/v1/versions/{version_id}/grade", "/versions/{version_id}/grade"],
)
def test_route_template_includes_api_prefix(route_path):
    request = _request("/api/v1/versions/ver_1/grade", route_path)
    assert route_template(request) == "/api/v1/versions/{version_id}/grade"


def test_route_template_falls_back_to_raw_path():
    assert route_template(_request("/api/v1/nowhere", None)) == "/api/v1/nowhere"


def test_route_template_outside_api_prefix_is_untouched():
    assert route_template(_request("/docs", "/docs")) == "/docs"


def test_resource_naming():
    assert resource_type_for("/api/v1/internal/jobs/{kind}/{job_id}/start") == "internal"
    assert resource_type_for("/") == "root"
    assert resource_id_for({"kind": "grade", "job_id": "grd_1"}) == "grd_1"
    assert resource_id_for({"kind": "grade"}) is None
