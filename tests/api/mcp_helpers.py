"""
tests.api.mcp_helpers

JSON-RPC message builders shared by the MCP transport tests.
"""

from __future__ import annotations

import json
from typing import List

INIT_PARAMS = {
    "protocolVersion": "2025-03-26",
    "capabilities": {},
    "clientInfo": {"name": "pytest-client", "version": "0.0.1"},
}


def rpc(method: str, params: dict | None = None, request_id: int | str | None = 1) -> dict:
    message: dict = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        message["params"] = params
    if request_id is not None:
        message["id"] = request_id
    return message


def call_tool(name: str, arguments: dict | None = None, request_id: int | str = 1) -> dict:
    return rpc("tools/call", {"name": name, "arguments": arguments or {}}, request_id)


def sse_data(body: str) -> List[dict]:
    """JSON payloads of every `data:` line in an event-stream body."""
    out = []
    for line in body.splitlines():
        if line.startswith("data:"):
            out.append(json.loads(line[len("data:"):].strip()))
    return out
