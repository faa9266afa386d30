"""
Tests for the Dispatch Engine.

Purpose:
- Unknown tools, invalid arguments, timeouts and handler exceptions all come
  back as error ToolResults; dispatch itself never raises for them.
- Handlers are never invoked with arguments that fail validation.
- A ToolResult returned by a handler passes through unmodified.
- Cancelling the awaiting task (session teardown) propagates.
"""

import asyncio

import pytest

from toolbridge.dispatch import DispatchConfig, DispatchEngine, ToolCallRequest, ToolResult, text_result
from toolbridge.registry import CapabilityRegistry, FieldSpec, FieldType, InputSchema, ToolDefinition


class CountingHandler:
    def __init__(self, result=None, exc: Exception | None = None, delay: float = 0.0) -> None:
        self.calls = []
        self._result = result if result is not None else text_result("ok")
        self._exc = exc
        self._delay = delay

    async def __call__(self, arguments):
        self.calls.append(dict(arguments))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._exc is not None:
            raise self._exc
        return self._result


def _engine(handler, *, fields=(), timeout_s: float = 60.0, name: str = "tool") -> DispatchEngine:
    registry = CapabilityRegistry()
    registry.register(
        ToolDefinition(name=name, description="", input_schema=InputSchema(tuple(fields)), handler=handler)
    )
    return DispatchEngine(registry.freeze(), DispatchConfig(timeout_s=timeout_s))


def _call(name: str = "tool", arguments=None, request_id=1) -> ToolCallRequest:
    return ToolCallRequest(request_id=request_id, tool_name=name, arguments=arguments or {})


@pytest.mark.asyncio
async def test_unknown_tool_is_an_error_result():
    engine = _engine(CountingHandler())
    result = await engine.dispatch(_call("nope"))
    assert result.is_error is True
    assert result.first_text() == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_unknown_tool_can_list_allowed_tools():
    registry = CapabilityRegistry()
    registry.register(ToolDefinition(name="echo", description="", input_schema=InputSchema(), handler=CountingHandler()))
    engine = DispatchEngine(registry, DispatchConfig(include_allowed_tools_in_error=True))

    result = await engine.dispatch(_call("nope"))
    assert "Allowed tools: ['echo']" in result.first_text()


@pytest.mark.asyncio
async def test_invalid_arguments_never_reach_the_handler():
    handler = CountingHandler()
    engine = _engine(handler, fields=[FieldSpec("n", FieldType.INTEGER, minimum=1)])

    for bad in ({}, {"n": "1"}, {"n": 0}, {"n": True}, [1]):
        result = await engine.dispatch(_call(arguments=bad))
        assert result.is_error is True

    assert handler.calls == []


@pytest.mark.asyncio
async def test_first_violation_message_is_returned():
    engine = _engine(
        CountingHandler(),
        fields=[FieldSpec("owner", FieldType.STRING), FieldSpec("repo", FieldType.STRING)],
    )
    result = await engine.dispatch(_call(arguments={}))
    assert result.first_text() == "Missing required field: owner."


@pytest.mark.asyncio
async def test_valid_call_passes_result_through_unmodified():
    expected = ToolResult(content=[{"type": "text", "text": "hello"}], is_error=False)
    handler = CountingHandler(result=expected)
    engine = _engine(handler, fields=[FieldSpec("message", FieldType.STRING)])

    result = await engine.dispatch(_call(arguments={"message": "hi"}))
    assert result is expected
    assert handler.calls == [{"message": "hi"}]


@pytest.mark.asyncio
async def test_handler_error_result_is_not_rewritten():
    handler = CountingHandler(result=ToolResult(content=[{"type": "text", "text": "nope"}], is_error=True))
    result = await _engine(handler).dispatch(_call())
    assert result.is_error is True
    assert result.first_text() == "nope"


@pytest.mark.asyncio
async def test_timeout_becomes_error_result():
    engine = _engine(CountingHandler(delay=5), timeout_s=0.05, name="slow")
    result = await engine.dispatch(_call("slow"))
    assert result.is_error is True
    assert result.first_text() == "Tool 'slow' timeout after 0.05s"


@pytest.mark.asyncio
async def test_handler_exception_becomes_error_result():
    engine = _engine(CountingHandler(exc=RuntimeError("boom")))
    result = await engine.dispatch(_call())
    assert result.is_error is True
    assert result.first_text() == "boom"


@pytest.mark.asyncio
async def test_handler_exception_without_message_gets_generic_text():
    engine = _engine(CountingHandler(exc=RuntimeError()), name="quiet")
    result = await engine.dispatch(_call("quiet"))
    assert result.first_text() == "Error invoking tool 'quiet'"


@pytest.mark.asyncio
async def test_non_tool_result_return_is_reported():
    async def bad_handler(arguments):
        return {"not": "a result"}

    result = await _engine(bad_handler, name="bad").dispatch(_call("bad"))
    assert result.is_error is True
    assert "invalid result" in result.first_text()


@pytest.mark.asyncio
async def test_cancellation_propagates():
    engine = _engine(CountingHandler(delay=5))
    task = asyncio.create_task(engine.dispatch(_call()))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


def test_wire_format_uses_is_error_alias():
    assert text_result("x").to_wire() == {"content": [{"type": "text", "text": "x"}], "isError": False}


def test_empty_content_is_rejected():
    with pytest.raises(ValueError):
        ToolResult(content=[], is_error=False)
