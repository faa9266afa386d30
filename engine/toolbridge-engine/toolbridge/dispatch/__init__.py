"""
Dispatch layer: result envelope contracts + the validating dispatch engine.
"""

from .contracts import (
    ContentBlock,
    RequestId,
    ToolCallRequest,
    ToolResult,
    error_result,
    json_result,
    text_result,
)
from .engine import DispatchConfig, DispatchEngine

__all__ = [
    "ContentBlock",
    "RequestId",
    "ToolCallRequest",
    "ToolResult",
    "error_result",
    "json_result",
    "text_result",
    "DispatchConfig",
    "DispatchEngine",
]
