"""Unit tests for the metrics endpoint label derived from the matched route."""

from __future__ import annotations

from types import SimpleNamespace

from starlette.requests import Request

from recipehub.shared.middleware import route_template


def _request(route: object | None, root_path: str = "") -> Request:
    scope = {"type": "http", "method": "GET", "path": "/", "headers": [], "root_path": root_path}
    if route is not None:
        scope["route"] = route
    return Request(scope)


class TestRouteTemplate:
    def test_mounted_route_gets_prefix(self) -> None:
        route = SimpleNamespace(path="/recipes/{recipe_id}", path_format="/recipes/{recipe_id}")
        assert route_template(_request(route, "/api/v1")) == "/api/v1/recipes/{recipe_id}"

    def test_flattened_route_not_prefixed_twice(self) -> None:
        route = SimpleNamespace(
            path="/api/v1/recipes/{recipe_id}", path_format="/api/v1/recipes/{recipe_id}"
        )
        assert route_template(_request(route, "/api/v1")) == "/api/v1/recipes/{recipe_id}"

    def test_path_used_without_path_format(self) -> None:
        route = SimpleNamespace(path="/api/v1/health")
        assert route_template(_request(route)) == "/api/v1/health"

    def test_unmatched(self) -> None:
        assert route_template(_request(None, "/api/v1")) == "unmatched"
