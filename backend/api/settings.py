# backend/api/settings.py
"""
backend.api.settings

Purpose:
    Centralized configuration for the FastAPI service.
    Values come from the environment once, at app creation; nothing downstream
    reads os.environ ad hoc.

Author:
    Kanir Pandya

Created:
    2026-02-15

Updated:
    2026-10-19
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.api.contracts.api_paths import ApiPaths
from toolbridge.config.defaults import DEFAULT_TOOL_TIMEOUT_SECONDS

# ----------------------------
# Environment variable constants
# ----------------------------
ENV_MCP_BASE_PATH = "MCP_BASE_PATH"
ENV_TOOL_TIMEOUT_SECONDS = "TOOL_TIMEOUT_SECONDS"
ENV_SSE_HEARTBEAT_SECONDS = "SSE_HEARTBEAT_SECONDS"
ENV_SESSION_IDLE_TIMEOUT_SECONDS = "SESSION_IDLE_TIMEOUT_SECONDS"
ENV_SESSION_REAP_INTERVAL_SECONDS = "SESSION_REAP_INTERVAL_SECONDS"
ENV_UPSTREAM_HTTP_TIMEOUT_SECONDS = "UPSTREAM_HTTP_TIMEOUT_SECONDS"
ENV_REDIS_URL = "REDIS_URL"
ENV_REDIS_KEY_PREFIX = "REDIS_KEY_PREFIX"
ENV_LOG_LEVEL = "LOG_LEVEL"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_name: str = Field(default="mcp-toolbridge")
    service_version: str = Field(default="0.1.0")

    mcp_base_path: str = Field(default=ApiPaths().mcp)

    tool_timeout_s: float = Field(default=DEFAULT_TOOL_TIMEOUT_SECONDS, gt=0)
    heartbeat_interval_s: float = Field(default=15.0, gt=0)
    session_idle_timeout_s: float = Field(default=300.0, gt=0)
    session_reap_interval_s: float = Field(default=30.0, gt=0)
    upstream_timeout_s: float = Field(default=30.0, gt=0)

    # Unset -> single-process in-memory session store.
    redis_url: Optional[str] = Field(default=None)
    redis_key_prefix: str = Field(default="toolbridge:")

    log_level: str = Field(default="INFO")


def _as_float(raw: str | None, *, default: float) -> float:
    """
    Parse an environment variable-ish value into a float.

    Accepts:
      - None / "" -> default
      - "30" / "2.5" -> float
    Raises:
      ValueError for non-numeric strings (fail fast at startup).
    """
    if raw is None:
        return default
    s = str(raw).strip()
    if not s:
        return default
    return float(s)


def _as_str(raw: str | None, *, default: str | None) -> str | None:
    if raw is None:
        return default
    s = raw.strip()
    return s or default


def get_settings(environ: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if environ is None else environ
    defaults = Settings()

    base_path = _as_str(env.get(ENV_MCP_BASE_PATH), default=defaults.mcp_base_path) or defaults.mcp_base_path
    if not base_path.startswith("/"):
        base_path = f"/{base_path}"

    return Settings(
        mcp_base_path=base_path.rstrip("/") or defaults.mcp_base_path,
        tool_timeout_s=_as_float(env.get(ENV_TOOL_TIMEOUT_SECONDS), default=defaults.tool_timeout_s),
        heartbeat_interval_s=_as_float(env.get(ENV_SSE_HEARTBEAT_SECONDS), default=defaults.heartbeat_interval_s),
        session_idle_timeout_s=_as_float(
            env.get(ENV_SESSION_IDLE_TIMEOUT_SECONDS), default=defaults.session_idle_timeout_s
        ),
        session_reap_interval_s=_as_float(
            env.get(ENV_SESSION_REAP_INTERVAL_SECONDS), default=defaults.session_reap_interval_s
        ),
        upstream_timeout_s=_as_float(env.get(ENV_UPSTREAM_HTTP_TIMEOUT_SECONDS), default=defaults.upstream_timeout_s),
        redis_url=_as_str(env.get(ENV_REDIS_URL), default=None),
        redis_key_prefix=_as_str(env.get(ENV_REDIS_KEY_PREFIX), default=defaults.redis_key_prefix)
        or defaults.redis_key_prefix,
        log_level=(_as_str(env.get(ENV_LOG_LEVEL), default=defaults.log_level) or defaults.log_level).upper(),
    )
