"""
backend.api.contracts.jsonrpc

Purpose:
    JSON-RPC 2.0 wire contract used by the MCP transport (message model,
    error codes, response builders and body parsing).

Notes:
    - A body is either one message object or a non-empty batch array.
    - Invalid members of a batch do not fail the whole batch; each yields its
      own -32600 response and the valid members are still dispatched.
    - Client-sent responses (objects with result/error but no method) are
      acknowledged and otherwise ignored; this server never issues requests.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Literal, Optional, Union

import mcp.types as types
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, ValidationError

from backend.api.error_handlers import _clean_validation_errors

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int]


class JsonRpcErrorCode(IntEnum):
    PARSE_ERROR = types.PARSE_ERROR
    INVALID_REQUEST = types.INVALID_REQUEST
    METHOD_NOT_FOUND = types.METHOD_NOT_FOUND
    INVALID_PARAMS = types.INVALID_PARAMS
    INTERNAL_ERROR = types.INTERNAL_ERROR


class JsonRpcError(Exception):
    def __init__(self, code: JsonRpcErrorCode, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_response(self, request_id: Optional[RequestId]) -> Dict[str, Any]:
        return error_response(request_id, self.code, self.message, self.data)


class JsonRpcRequest(BaseModel):
    """
    A request or notification. Notifications carry no id and never get a response.
    """

    model_config = ConfigDict(extra="ignore")

    jsonrpc: Literal["2.0"]
    method: str
    id: Optional[RequestId] = None
    params: Optional[Dict[str, Any]] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


def success_response(request_id: RequestId, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(
    request_id: Optional[RequestId],
    code: JsonRpcErrorCode,
    message: str,
    data: Any = None,
) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": int(code), "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


@dataclass
class ParsedBody:
    requests: List[JsonRpcRequest] = field(default_factory=list)
    # Ready-made -32600 responses for batch members that failed validation.
    errors: List[Dict[str, Any]] = field(default_factory=list)
    is_batch: bool = False

    @property
    def has_requests(self) -> bool:
        """True if anything in the body expects a response."""
        return bool(self.errors) or any(not r.is_notification for r in self.requests)

    @property
    def has_initialize(self) -> bool:
        return any(r.method == "initialize" for r in self.requests)


def _extract_id(raw: Any) -> Optional[RequestId]:
    if isinstance(raw, dict):
        rid = raw.get("id")
        if isinstance(rid, (str, int)) and not isinstance(rid, bool):
            return rid
    return None


def _is_client_response(raw: Any) -> bool:
    return isinstance(raw, dict) and "method" not in raw and ("result" in raw or "error" in raw)


def parse_body(body: bytes | str) -> ParsedBody:
    """
    Parse an HTTP body into JSON-RPC requests.

    Raises:
        JsonRpcError(PARSE_ERROR) for malformed JSON,
        JsonRpcError(INVALID_REQUEST) for a body that is neither object nor non-empty array.
    """
    try:
        payload = json.loads(body)
    except (ValueError, TypeError) as e:
        raise JsonRpcError(JsonRpcErrorCode.PARSE_ERROR, "Parse error", str(e)) from e

    is_batch = isinstance(payload, list)
    items = payload if is_batch else [payload]
    if is_batch and not items:
        raise JsonRpcError(JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request", "Empty batch")
    if not is_batch and not isinstance(payload, dict):
        raise JsonRpcError(JsonRpcErrorCode.INVALID_REQUEST, "Invalid Request", "Expected a JSON object or array")

    parsed = ParsedBody(is_batch=is_batch)
    for raw in items:
        if _is_client_response(raw):
            continue
        try:
            parsed.requests.append(JsonRpcRequest.model_validate(raw))
        except ValidationError as e:
            details = _clean_validation_errors(jsonable_encoder(e.errors(include_url=False)))
            parsed.errors.append(
                error_response(
                    _extract_id(raw),
                    JsonRpcErrorCode.INVALID_REQUEST,
                    "Invalid Request",
                    {"errors": details},
                )
            )
    return parsed
