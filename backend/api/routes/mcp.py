"""
backend.api.routes.mcp

Purpose:
    HTTP surface of the MCP transport (GET/POST/DELETE on the base path).

Notes:
    - GET opens an SSE session. The first event is `endpoint`, whose data is
      the URL to POST messages to; responses arrive as `message` events.
    - POST naming an SSE session (sessionId query or Mcp-Session-Id header)
      is acknowledged with 202 and answered on the stream.
    - POST without an SSE session is streaming-HTTP: `initialize` creates a
      session (returned in Mcp-Session-Id); without a session id the body runs
      in an ephemeral session. Responses come back as JSON, or as an SSE
      stream when the client lists text/event-stream ahead of application/json.
    - DELETE closes a session wherever it lives; closing twice is harmless.
    - Malformed JSON gets a JSON-RPC parse error with HTTP 400. Unknown or
      expired sessions get the SESSION_NOT_FOUND error envelope with 404.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sse_starlette.sse import EventSourceResponse

from backend.api.contracts.api_tags import ApiTags
from backend.api.contracts.error_contract import ApiErrorCode, ErrorResponse
from backend.api.contracts.jsonrpc import JsonRpcError, parse_body
from backend.api.contracts.request_id_policy import SessionIdPolicy
from backend.api.dependencies import get_app_settings, get_session_manager
from backend.api.errors import ApiError
from backend.api.logging.request_context import session_id_ctx_var
from backend.api.settings import Settings
from backend.api.transport.manager import SessionManager
from backend.shared.sessions import TransportMode

logger = logging.getLogger(__name__)

_tags = ApiTags()
_session_policy = SessionIdPolicy()

MEDIA_JSON = "application/json"
MEDIA_EVENT_STREAM = "text/event-stream"

_STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # Disable proxy buffering for real-time streaming
}

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing session id"},
    404: {"model": ErrorResponse, "description": "Unknown or expired session"},
    406: {"model": ErrorResponse, "description": "Client does not accept a supported media type"},
}


def _media_types(accept: Optional[str]) -> List[str]:
    if not accept:
        return []
    return [part.split(";")[0].strip().lower() for part in accept.split(",") if part.strip()]


def _accepts(accept: Optional[str], media_type: str) -> bool:
    types = _media_types(accept)
    if not types:
        return True
    major = media_type.split("/")[0]
    return media_type in types or "*/*" in types or f"{major}/*" in types


def _prefers_event_stream(accept: Optional[str]) -> bool:
    types = _media_types(accept)
    if MEDIA_EVENT_STREAM not in types:
        return False
    if MEDIA_JSON not in types:
        return True
    return types.index(MEDIA_EVENT_STREAM) < types.index(MEDIA_JSON)


def _not_acceptable(expected: List[str]) -> ApiError:
    return ApiError(
        status_code=status.HTTP_406_NOT_ACCEPTABLE,
        error_code=ApiErrorCode.NOT_ACCEPTABLE,
        message="Not acceptable",
        details={"expected": expected},
    )


def _session_not_found(session_id: str) -> ApiError:
    return ApiError(
        status_code=status.HTTP_404_NOT_FOUND,
        error_code=ApiErrorCode.SESSION_NOT_FOUND,
        message="Session not found",
        details={"session_id": session_id},
    )


def build_mcp_router(base_path: str) -> APIRouter:
    router = APIRouter(tags=[_tags.mcp])

    @router.get(base_path, responses={406: _ERROR_RESPONSES[406]})
    async def open_stream(
        request: Request,
        manager: SessionManager = Depends(get_session_manager),
        settings: Settings = Depends(get_app_settings),
    ) -> EventSourceResponse:
        if not _accepts(request.headers.get("accept"), MEDIA_EVENT_STREAM):
            raise _not_acceptable([MEDIA_EVENT_STREAM])

        session = await manager.open_sse_session()
        session_id_ctx_var.set(session.id)

        endpoint = f"{request.url.path}?{_session_policy.query_param}={session.id}"
        return EventSourceResponse(
            manager.sse_events(session, endpoint),
            ping=max(1, int(settings.heartbeat_interval_s)),
            headers={**_STREAM_HEADERS, _session_policy.header: session.id},
        )

    @router.post(base_path, responses=_ERROR_RESPONSES)
    async def post_message(
        request: Request,
        session_id_query: Optional[str] = Query(default=None, alias=_session_policy.query_param),
        session_id_header: Optional[str] = Header(default=None, alias=_session_policy.header),
        manager: SessionManager = Depends(get_session_manager),
        settings: Settings = Depends(get_app_settings),
    ) -> Response:
        try:
            body = parse_body(await request.body())
        except JsonRpcError as e:
            return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=e.to_response(None))

        session_id = session_id_query or session_id_header
        if session_id:
            session_id_ctx_var.set(session_id)
            mode = await manager.session_mode(session_id)
            if mode is None:
                raise _session_not_found(session_id)
            if mode is TransportMode.SSE:
                await manager.submit(session_id, body)
                return Response(status_code=status.HTTP_202_ACCEPTED)

        accept = request.headers.get("accept")
        if body.has_requests and not (_accepts(accept, MEDIA_JSON) or _accepts(accept, MEDIA_EVENT_STREAM)):
            raise _not_acceptable([MEDIA_JSON, MEDIA_EVENT_STREAM])

        if session_id:
            session = manager.streaming_session(session_id)
        elif body.has_requests:
            session = await manager.open_streaming_session(ephemeral=not body.has_initialize)
            session_id_ctx_var.set(session.id)
        else:
            # Notifications with no session have nothing to act on.
            return Response(status_code=status.HTTP_202_ACCEPTED)

        headers: Dict[str, str] = {} if session.ephemeral else {_session_policy.header: session.id}

        if not body.has_requests:
            await manager.collect_responses(session, body)
            return Response(status_code=status.HTTP_202_ACCEPTED, headers=headers)

        if _prefers_event_stream(accept):
            return EventSourceResponse(
                manager.stream_responses(session, body),
                ping=max(1, int(settings.heartbeat_interval_s)),
                headers={**_STREAM_HEADERS, **headers},
            )

        responses = await manager.collect_responses(session, body)
        if not responses:
            # Everything was cancelled or the session closed mid-flight.
            return Response(status_code=status.HTTP_202_ACCEPTED, headers=headers)
        content = responses if body.is_batch else responses[0]
        return JSONResponse(content=content, headers=headers)

    @router.delete(base_path, responses={400: _ERROR_RESPONSES[400]})
    async def close_session(
        session_id_query: Optional[str] = Query(default=None, alias=_session_policy.query_param),
        session_id_header: Optional[str] = Header(default=None, alias=_session_policy.header),
        manager: SessionManager = Depends(get_session_manager),
    ) -> dict:
        session_id = session_id_query or session_id_header
        if not session_id:
            raise ApiError(
                status_code=status.HTTP_400_BAD_REQUEST,
                error_code=ApiErrorCode.BAD_REQUEST,
                message="Missing session id",
                details={"expected": [_session_policy.query_param, _session_policy.header]},
            )
        session_id_ctx_var.set(session_id)
        closed = await manager.close_session(session_id, reason="client request")
        return {"session_id": session_id, "closed": closed}

    return router
