"""
backend.api.routes.v1.info

Purpose:
    Versioned info endpoint that exposes API metadata, the MCP endpoint and
    the tool catalogue for client discovery.

Author:
    Kanir Pandya

Created:
    2026-02-15
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.api.contracts.api_paths import ApiPaths
from backend.api.contracts.api_tags import ApiTags
from backend.api.dependencies import get_app_settings, get_registry
from backend.api.settings import Settings
from backend.api.transport.protocol import SUPPORTED_PROTOCOL_VERSIONS
from backend.shared.sessions import TransportMode
from toolbridge.registry import CapabilityRegistry

_paths = ApiPaths()
_tags = ApiTags()

router = APIRouter(tags=[_tags.info])


@router.get(_paths.info)
def info(
    settings: Settings = Depends(get_app_settings),
    registry: CapabilityRegistry = Depends(get_registry),
) -> dict:
    # Keep this as stable contract; safe for clients to depend on.
    return {
        "api_version": "v1",
        "service": settings.service_name,
        "version": settings.service_version,
        "endpoints": {
            "mcp": settings.mcp_base_path,
            "health": f"{_paths.v1_prefix}{_paths.health}",
        },
        "supported": {
            "transports": [mode.value for mode in TransportMode],
            "protocol_versions": list(SUPPORTED_PROTOCOL_VERSIONS),
        },
        "tools": [{"name": t["name"], "description": t["description"]} for t in registry.list()],
    }
