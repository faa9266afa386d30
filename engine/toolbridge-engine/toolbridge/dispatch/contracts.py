from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Union

import mcp.types as types
from pydantic import BaseModel, ConfigDict, Field, field_validator

RequestId = Union[str, int]


class ContentBlock(BaseModel):
    # Only text blocks are produced today; the discriminator is kept for clients.
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """
    Uniform result envelope. Carries both success payloads and tool failures;
    a failed tool never aborts the session.
    """

    model_config = ConfigDict(populate_by_name=True)

    content: List[ContentBlock]
    is_error: bool = Field(default=False, alias="isError")

    @field_validator("content")
    @classmethod
    def _content_not_empty(cls, v: List[ContentBlock]) -> List[ContentBlock]:
        if not v:
            raise ValueError("ToolResult content must contain at least one block")
        return v

    def first_text(self) -> str:
        return self.content[0].text

    def to_wire(self) -> Dict[str, Any]:
        """MCP `CallToolResult` wire form."""
        result = types.CallToolResult(
            content=[types.TextContent(type="text", text=block.text) for block in self.content],
            isError=self.is_error,
        )
        return result.model_dump(by_alias=True, exclude_none=True)


class ToolCallRequest(BaseModel):
    request_id: RequestId
    tool_name: str
    arguments: Any = Field(default_factory=dict)


def text_result(text: str) -> ToolResult:
    return ToolResult(content=[ContentBlock(text=text)], is_error=False)


def json_result(payload: Any) -> ToolResult:
    return text_result(json.dumps(payload, indent=2, default=str))


def error_result(message: str) -> ToolResult:
    return ToolResult(content=[ContentBlock(text=message)], is_error=True)
