"""
backend.api.dependencies

Purpose:
    FastAPI dependencies that hand route handlers the objects built once in
    create_app() and stored on app.state.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

from fastapi import Request

from backend.api.settings import Settings
from backend.api.transport.manager import SessionManager
from toolbridge.registry import CapabilityRegistry


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_registry(request: Request) -> CapabilityRegistry:
    return request.app.state.registry
