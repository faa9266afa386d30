"""
engine.toolbridge-engine.tests.conftest

Purpose:
    Local pytest fixtures for toolbridge engine tests.
    Collaborator APIs are faked with httpx.MockTransport; nothing here
    touches the network.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

from typing import Callable

import httpx
import pytest

from fakes import TEST_ENV, RecordingTransport
from toolbridge.config.credentials import ToolCredentials


@pytest.fixture()
def credentials() -> ToolCredentials:
    return ToolCredentials.from_env(TEST_ENV)


@pytest.fixture()
def no_credentials() -> ToolCredentials:
    return ToolCredentials.from_env({})


@pytest.fixture()
def mock_client_factory() -> Callable[[RecordingTransport], httpx.AsyncClient]:
    def _make(transport: RecordingTransport) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(transport))

    return _make
