"""
toolbridge.errors

Purpose:
    Exception types raised by adapters and tool handlers.
    The dispatch engine turns every one of these into an error ToolResult;
    none of them ever reaches the transport.
"""

from __future__ import annotations


class ToolError(Exception):
    """Base class for failures a tool reports back to the client verbatim."""


class ConfigurationError(ToolError):
    """A credential/setting required by a tool is absent."""

    def __init__(self, setting: str, message: str | None = None) -> None:
        self.setting = setting
        super().__init__(message or f"Error: {setting} not configured in environment variables")


class UpstreamError(ToolError):
    """A collaborator API answered with a non-success status."""

    def __init__(self, provider: str, status_code: int, body: str) -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(f"{provider} API Error ({status_code}): {body}")
