# toolbridge/utils/logging.py
# Purpose: Shared logging helpers (logger factory + adapters) for the toolbridge engine.
# Notes: The service owns handler/format/level. This module must never print or configure handlers.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping


# Stable logger name prefix so operators can filter engine logs with one rule.
LOGGER_NAMESPACE = "toolbridge"


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Return a namespaced logger. Does NOT configure handlers/levels.
    """
    if not name:
        return logging.getLogger(LOGGER_NAMESPACE)

    # e.g. "toolbridge.dispatch.engine"
    if name.startswith(LOGGER_NAMESPACE):
        return logging.getLogger(name)

    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    Prefix log messages with stable key=value context (tool=..., request_id=..., session_id=...).
    """

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        super().__init__(logger, dict(extra or {}))

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        extra = kwargs.get("extra") or {}
        merged = {**self.extra, **extra}

        if merged:
            ctx = " ".join(f"{k}={merged[k]}" for k in sorted(merged.keys()) if merged[k] is not None)
            if ctx:
                msg = f"{ctx} | {msg}"

        kwargs["extra"] = {}
        return msg, kwargs


@dataclass(frozen=True)
class LogCtx:
    """
    Convenience container for common fields.
    Never put argument payloads or credentials here.
    """
    tool: str | None = None
    request_id: str | None = None
    session_id: str | None = None

    def as_extra(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "request_id": self.request_id,
            "session_id": self.session_id,
        }


def with_ctx(logger: logging.Logger, ctx: LogCtx | Mapping[str, Any] | None = None) -> ContextLoggerAdapter:
    if ctx is None:
        return ContextLoggerAdapter(logger, {})
    if isinstance(ctx, LogCtx):
        return ContextLoggerAdapter(logger, ctx.as_extra())
    return ContextLoggerAdapter(logger, dict(ctx))


def is_trace_enabled(logger: logging.Logger) -> bool:
    return logger.isEnabledFor(logging.DEBUG)
