"""
engine.toolbridge-engine.tests.fakes

Purpose:
    Test doubles shared by the engine tests: a credential environment and a
    route-table fake for collaborator HTTP APIs, plugged into
    httpx.MockTransport.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

import httpx

TEST_ENV = {
    "GITHUB_TOKEN": "gh-test-token",
    "OURA_API_TOKEN": "oura-test-token",
    "GOOGLE_CLIENT_ID": "client-id",
    "GOOGLE_CLIENT_SECRET": "client-secret",
    "GOOGLE_REFRESH_TOKEN": "refresh-token",
}


class RecordingTransport:
    """
    MockTransport handler that records requests and answers from a route table.

    Routes map "METHOD path" (path without query string) to either a
    (status, json_body) tuple or a callable(request) -> httpx.Response.
    """

    def __init__(self, routes: Dict[str, Any]) -> None:
        self.routes = routes
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f"{request.method} {request.url.path}"
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"message": f"no route for {key}"})
        if callable(route):
            return route(request)
        status, body = route
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content.decode("utf-8"))
