"""
backend.api.main

Purpose:
    FastAPI application entrypoint for the MCP tool bridge.

Notes:
    - Everything the routes need (registry, dispatch engine, session store,
      session manager) is built eagerly in create_app() and kept on app.state.
    - The lifespan only starts the idle reaper and releases resources on
      shutdown (sessions, store connection, upstream HTTP client).
    - Collaborators can be injected for tests (settings, credentials,
      http_client, store).

Author:
    Kanir Pandya

Created:
    2026-02-15

Updated:
    2026-10-19
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
from fastapi import FastAPI

from backend.api.contracts.request_id_policy import RequestIdPolicy
from backend.api.error_handlers import register_error_handlers
from backend.api.logging.logging_config import configure_logging
from backend.api.middleware.request_id import RequestIdMiddleware
from backend.api.routes.health import router as health_router
from backend.api.routes.mcp import build_mcp_router
from backend.api.routes.v1 import v1_router
from backend.api.settings import Settings, get_settings
from backend.api.transport.manager import SessionManager
from backend.api.transport.protocol import McpProtocol
from backend.shared.sessions import InMemorySessionStore, SessionStore
from toolbridge.config.credentials import ToolCredentials
from toolbridge.dispatch import DispatchConfig, DispatchEngine
from toolbridge.tools import build_handlers, build_registry

logger = logging.getLogger(__name__)


def build_session_store(settings: Settings) -> SessionStore:
    if not settings.redis_url:
        return InMemorySessionStore()

    # Imported lazily so single-process deployments never touch redis.
    from backend.shared.sessions.redis_store import RedisSessionStore

    return RedisSessionStore.from_url(
        settings.redis_url,
        key_prefix=settings.redis_key_prefix,
        ttl_seconds=int(settings.session_idle_timeout_s),
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    credentials: Optional[ToolCredentials] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    settings = settings or get_settings()

    configure_logging(settings.log_level)

    credentials = credentials or ToolCredentials.from_env()
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=settings.upstream_timeout_s)

    # Registry errors (duplicate names, bad schemas) abort startup here.
    registry = build_registry(build_handlers(credentials, client))
    dispatcher = DispatchEngine(registry, DispatchConfig(timeout_s=settings.tool_timeout_s))
    protocol = McpProtocol(
        registry,
        dispatcher,
        server_name=settings.service_name,
        server_version=settings.service_version,
    )

    session_store = store or build_session_store(settings)
    manager = SessionManager(
        session_store,
        protocol,
        heartbeat_interval_s=settings.heartbeat_interval_s,
        idle_timeout_s=settings.session_idle_timeout_s,
        reap_interval_s=settings.session_reap_interval_s,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "starting %s tools=%d store=%s credentials=%s",
            settings.service_name,
            len(registry),
            type(session_store).__name__,
            credentials.configured_providers(),
        )
        await manager.start()
        try:
            yield
        finally:
            await manager.stop()
            await session_store.aclose()
            if owns_client:
                await client.aclose()

    app = FastAPI(title=settings.service_name, version=settings.service_version, lifespan=lifespan)

    app.state.settings = settings
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.session_manager = manager

    @app.get("/")
    def root():
        return {"status": "ok", "service": settings.service_name}

    app.add_middleware(RequestIdMiddleware, policy=RequestIdPolicy())

    register_error_handlers(app)

    app.include_router(health_router)
    app.include_router(v1_router)
    app.include_router(build_mcp_router(settings.mcp_base_path))

    return app


app = create_app()
