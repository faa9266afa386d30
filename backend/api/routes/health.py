"""
backend.api.routes.health

Purpose:
    Liveness endpoint for container/orchestrator checks. Reports this
    instance's live session count and which Session Store backend it runs on.

Notes:
    - No store round-trip and no upstream calls; a slow Redis or collaborator
      must not fail liveness.

Author:
    Kanir Pandya

Created:
    2026-02-15

Updated:
    2026-10-19
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.api.contracts.api_paths import ApiPaths
from backend.api.contracts.api_tags import ApiTags
from backend.api.dependencies import get_session_manager
from backend.api.transport.manager import SessionManager

_paths = ApiPaths()
_tags = ApiTags()

router = APIRouter(tags=[_tags.health])


@router.get(_paths.health)
def health(manager: SessionManager = Depends(get_session_manager)) -> dict:
    return {
        "ok": True,
        "active_sessions": manager.active_sessions,
        "session_store": type(manager.store).__name__,
    }
