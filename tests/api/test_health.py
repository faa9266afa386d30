"""
tests.api.test_health

Purpose:
    Smoke tests for health and discovery endpoints.

Author:
    Kanir Pandya

Created:
    2026-02-15
"""

from __future__ import annotations


def test_health_root_ok(client) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "active_sessions": 0, "session_store": "InMemorySessionStore"}
    assert r.headers.get("x-request-id")


def test_health_root_counts_live_sessions(client) -> None:
    client.post("/mcp", json={"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    assert client.get("/health").json()["active_sessions"] == 1


def test_health_v1_ok(client) -> None:
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
    assert r.headers.get("x-request-id")


def test_request_id_is_echoed(client) -> None:
    r = client.get("/health", headers={"X-Request-Id": "req-123"})
    assert r.headers["x-request-id"] == "req-123"


def test_info_lists_tool_catalogue(client) -> None:
    r = client.get("/v1/info")
    assert r.status_code == 200

    data = r.json()
    assert data["api_version"] == "v1"
    assert data["endpoints"]["mcp"] == "/mcp"
    assert data["supported"]["transports"] == ["sse", "streaming-http"]
    assert [t["name"] for t in data["tools"]] == [
        "echo",
        "list_github_issues",
        "get_oura_stress_recovery",
        "create_google_doc_for_issue",
        "edit_google_doc",
        "add_github_issue_comment",
    ]
