"""
backend.api.transport.protocol

Purpose:
    MCP method handling on top of JSON-RPC: maps a parsed request onto the
    Capability Registry / Dispatch Engine and returns the JSON-RPC result.

Notes:
    - Tool failures are never JSON-RPC errors; tools/call always returns a
      ToolResult envelope ({"content": [...], "isError": bool}).
    - notifications/cancelled needs the session's in-flight map and is
      handled by the SessionManager before a request reaches this class.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import mcp.types as types

from backend.api.contracts.jsonrpc import JsonRpcError, JsonRpcErrorCode, JsonRpcRequest
from backend.api.transport.session import Session
from toolbridge.dispatch import DispatchEngine, ToolCallRequest
from toolbridge.registry import CapabilityRegistry

logger = logging.getLogger(__name__)

LATEST_PROTOCOL_VERSION = "2025-03-26"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26")

METHOD_INITIALIZE = "initialize"
METHOD_PING = "ping"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"
NOTIFICATION_INITIALIZED = "notifications/initialized"
NOTIFICATION_CANCELLED = "notifications/cancelled"

MethodHandler = Callable[[Session, JsonRpcRequest], Awaitable[Any]]


class McpProtocol:
    def __init__(
        self,
        registry: CapabilityRegistry,
        dispatcher: DispatchEngine,
        *,
        server_name: str,
        server_version: str,
    ) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._server_info = types.Implementation(name=server_name, version=server_version)
        self._methods: Dict[str, MethodHandler] = {
            METHOD_INITIALIZE: self._initialize,
            METHOD_PING: self._ping,
            METHOD_TOOLS_LIST: self._tools_list,
            METHOD_TOOLS_CALL: self._tools_call,
        }

    async def handle(self, session: Session, request: JsonRpcRequest) -> Any:
        """
        Execute one request and return its JSON-RPC `result`.

        Raises:
            JsonRpcError for protocol-level failures (unknown method, bad params).
        """
        method = self._methods.get(request.method)
        if method is None:
            raise JsonRpcError(JsonRpcErrorCode.METHOD_NOT_FOUND, f"Method not found: {request.method}")
        return await method(session, request)

    def handle_notification(self, session: Session, request: JsonRpcRequest) -> None:
        if request.method == NOTIFICATION_INITIALIZED:
            session.initialized = True
            return
        # Unknown notifications are ignored per JSON-RPC.
        logger.debug("ignoring notification method=%s", request.method)

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    async def _initialize(self, session: Session, request: JsonRpcRequest) -> Dict[str, Any]:
        params = request.params or {}
        requested = params.get("protocolVersion")
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        session.protocol_version = version
        client_info = params.get("clientInfo")
        if isinstance(client_info, dict):
            session.client_info = client_info

        logger.info(
            "initialize protocol=%s client=%s",
            version,
            (session.client_info or {}).get("name", "-"),
        )
        result = types.InitializeResult(
            protocolVersion=version,
            capabilities=types.ServerCapabilities(tools=types.ToolsCapability(listChanged=False)),
            serverInfo=self._server_info,
        )
        # The tool list rides along so clients can skip a tools/list round-trip.
        return {**result.model_dump(by_alias=True, exclude_none=True), "tools": self._registry.list()}

    async def _ping(self, session: Session, request: JsonRpcRequest) -> Dict[str, Any]:
        return {}

    async def _tools_list(self, session: Session, request: JsonRpcRequest) -> Dict[str, Any]:
        return {"tools": self._registry.list()}

    async def _tools_call(self, session: Session, request: JsonRpcRequest) -> Dict[str, Any]:
        params = request.params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcError(JsonRpcErrorCode.INVALID_PARAMS, "Invalid params: 'name' must be a non-empty string")

        arguments: Optional[Any] = params.get("arguments")
        if arguments is None:
            arguments = {}

        result = await self._dispatcher.dispatch(
            ToolCallRequest(request_id=request.id, tool_name=name, arguments=arguments),
            session_id=session.id,
        )
        return result.to_wire()
