# toolbridge/dispatch/engine.py

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Optional

from toolbridge.config.defaults import DEFAULT_TOOL_TIMEOUT_SECONDS
from toolbridge.registry import CapabilityRegistry, validate_arguments
from toolbridge.utils.logging import LogCtx, get_logger, is_trace_enabled, with_ctx

from .contracts import ToolCallRequest, ToolResult, error_result

logger = get_logger(__name__)


@dataclass(frozen=True)
class DispatchConfig:
    timeout_s: float = DEFAULT_TOOL_TIMEOUT_SECONDS
    include_allowed_tools_in_error: bool = False


class DispatchEngine:
    """
    Validate -> invoke -> normalize.

    This is the safety gate between the transport and the tool handlers:
    - never raises for tool-level problems; every outcome is a ToolResult
    - never calls a handler with arguments that failed validation
    - cancellation of the awaiting task (session teardown) propagates
    """

    def __init__(self, registry: CapabilityRegistry, config: Optional[DispatchConfig] = None) -> None:
        self._registry = registry
        self._config = config or DispatchConfig()

    @property
    def timeout_s(self) -> float:
        return self._config.timeout_s

    async def dispatch(self, request: ToolCallRequest, *, session_id: str | None = None) -> ToolResult:
        log = with_ctx(
            logger,
            LogCtx(tool=request.tool_name, request_id=str(request.request_id), session_id=session_id),
        )

        definition = self._registry.lookup(request.tool_name)
        if definition is None:
            msg = f"Unknown tool: {request.tool_name}"
            if self._config.include_allowed_tools_in_error:
                msg += f". Allowed tools: {self._registry.names()}"
            log.info("dispatch rejected: unknown tool")
            return error_result(msg)

        violations = validate_arguments(definition.input_schema, request.arguments)
        if violations:
            first = violations[0]
            log.info("dispatch rejected: invalid arguments field=%s code=%s", first.field, first.code.value)
            return error_result(first.message)

        if is_trace_enabled(logger):
            log.debug("dispatch arguments keys=%s", sorted((request.arguments or {}).keys()))

        started = time.perf_counter()
        try:
            out = await asyncio.wait_for(
                definition.handler(dict(request.arguments or {})),
                timeout=self._config.timeout_s,
            )
        except asyncio.TimeoutError:
            log.warning("dispatch timeout after %.1fs", self._config.timeout_s)
            return error_result(f"Tool '{definition.name}' timeout after {self._config.timeout_s:g}s")
        except Exception as e:
            log.warning("dispatch handler error: %s", type(e).__name__, exc_info=True)
            message = str(e).strip()
            return error_result(message or f"Error invoking tool '{definition.name}'")

        latency_ms = int((time.perf_counter() - started) * 1000)

        if not isinstance(out, ToolResult):
            log.error("dispatch handler returned %s instead of ToolResult", type(out).__name__)
            return error_result(f"Error invoking tool '{definition.name}': invalid result")

        log.info("dispatch ok is_error=%s latency_ms=%s", out.is_error, latency_ms)
        return out
