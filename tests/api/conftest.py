"""
tests.api.conftest

Shared pytest fixtures for API tests.

Notes:
    - Apps are built with explicit Settings/credentials and an in-memory
      session store so tests never read the developer's environment.
    - Collaborator HTTP is routed to a MockTransport that answers 503;
      API tests exercise the transport, not the integrations.
    - TestClient is entered as a context manager so the lifespan (idle
      reaper + shutdown) runs.
"""

from __future__ import annotations

from typing import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.api.main import create_app
from backend.api.settings import Settings
from backend.shared.sessions import InMemorySessionStore, SessionStore
from toolbridge.config.credentials import ToolCredentials


def _upstream_unavailable(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, text="upstream disabled in tests")


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        tool_timeout_s=5.0,
        heartbeat_interval_s=1.0,
        session_idle_timeout_s=300.0,
        session_reap_interval_s=60.0,
    )


@pytest.fixture()
def client_factory(test_settings):
    """
    Factory fixture that creates a fresh app + TestClient.

    IMPORTANT:
        The returned client must be used as a context manager.
    """

    def _make(settings: Settings | None = None, *, store: SessionStore | None = None) -> TestClient:
        app = create_app(
            settings or test_settings,
            credentials=ToolCredentials.from_env({}),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(_upstream_unavailable)),
            store=store or InMemorySessionStore(),
        )
        return TestClient(app, raise_server_exceptions=True)

    return _make


@pytest.fixture()
def client(client_factory) -> Iterator[TestClient]:
    with client_factory() as c:
        yield c
