"""
tests.api.test_session_manager

Purpose:
    Transport-level tests for SessionManager and the Session state machine:
    SSE delivery, out-of-order completion, cancellation, teardown, idle
    reaping and the cross-instance bridge.

Notes:
    - Handlers block on named asyncio.Events so completion order is decided
      by the test, not by the scheduler.
    - Frames are read straight off the session's outbound channel; going
      through an HTTP client would hang on the never-ending SSE stream.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict

import pytest

from backend.api.contracts.jsonrpc import ParsedBody, parse_body
from backend.api.transport.errors import IllegalTransitionError
from backend.api.transport.manager import SessionManager
from backend.api.transport.protocol import McpProtocol
from backend.api.transport.session import Session, SessionState
from backend.shared.sessions import ChannelClosedError, InMemorySessionStore, SessionStore, TransportMode
from mcp_helpers import call_tool, rpc
from toolbridge.dispatch import DispatchConfig, DispatchEngine, text_result
from toolbridge.registry import CapabilityRegistry, FieldSpec, FieldType, InputSchema, ToolDefinition


class Gates:
    """Named events that `wait` tool calls block on."""

    def __init__(self) -> None:
        self._events: Dict[str, asyncio.Event] = {}

    def _event(self, name: str) -> asyncio.Event:
        return self._events.setdefault(name, asyncio.Event())

    def release(self, name: str) -> None:
        self._event(name).set()

    async def wait(self, arguments: Dict[str, Any]):
        await self._event(arguments["gate"]).wait()
        return text_result(f"released {arguments['gate']}")


async def _echo(arguments: Dict[str, Any]):
    return text_result(f"Tool echo: {arguments['message']}")


def _manager(
    gates: Gates | None = None,
    *,
    store: SessionStore | None = None,
    idle_timeout_s: float = 300.0,
) -> SessionManager:
    gates = gates or Gates()
    registry = CapabilityRegistry()
    registry.register(
        ToolDefinition(
            name="echo",
            description="Echo a message",
            input_schema=InputSchema((FieldSpec("message", FieldType.STRING),)),
            handler=_echo,
        )
    )
    registry.register(
        ToolDefinition(
            name="wait",
            description="Block until the named gate is released",
            input_schema=InputSchema((FieldSpec("gate", FieldType.STRING),)),
            handler=gates.wait,
        )
    )
    registry.freeze()

    protocol = McpProtocol(
        registry,
        DispatchEngine(registry, DispatchConfig(timeout_s=5.0)),
        server_name="test-server",
        server_version="0.0.0",
    )
    return SessionManager(
        store or InMemorySessionStore(),
        protocol,
        heartbeat_interval_s=0.05,
        idle_timeout_s=idle_timeout_s,
        reap_interval_s=60.0,
    )


def _body(payload: Any) -> ParsedBody:
    return parse_body(json.dumps(payload))


async def _settle() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


async def _next_message(session: Session, timeout: float = 1.0) -> dict:
    frame = await session.outbound.next_frame(timeout=timeout)
    assert frame is not None, "expected a frame on the outbound channel"
    assert frame["event"] == "message"
    return json.loads(frame["data"])


async def _until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout)


# ---------------------------------------------------------------------------
# Session state machine
# ---------------------------------------------------------------------------


def test_session_rejects_illegal_transitions() -> None:
    session = Session(id="s1", transport_mode=TransportMode.SSE)
    assert session.state is SessionState.CONNECTING

    with pytest.raises(IllegalTransitionError):
        session.transition(SessionState.IDLE)

    session.transition(SessionState.OPEN)
    session.transition(SessionState.CLOSED)

    with pytest.raises(IllegalTransitionError):
        session.transition(SessionState.OPEN)


@pytest.mark.asyncio
async def test_session_finish_is_exactly_once() -> None:
    session = Session(id="s1", transport_mode=TransportMode.STREAMING_HTTP)
    session.transition(SessionState.OPEN)
    task = asyncio.create_task(asyncio.sleep(0))

    session.begin(1, task)
    assert session.state is SessionState.DISPATCHING
    assert session.finish(1, task) is True
    assert session.finish(1, task) is False
    assert session.state is SessionState.IDLE

    session.begin(2, task)
    session.transition(SessionState.CLOSED)
    session.abandon_all()
    assert session.finish(2, task) is False

    await task


# ---------------------------------------------------------------------------
# SSE sessions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_open_sse_session_announces_endpoint_first() -> None:
    manager = _manager()
    session = await manager.open_sse_session()

    assert session.state is SessionState.OPEN
    record = await manager.store.get(session.id)
    assert record is not None
    assert record.transport_mode is TransportMode.SSE

    endpoint = f"/mcp?sessionId={session.id}"
    events = manager.sse_events(session, endpoint)
    assert await events.__anext__() == {"event": "endpoint", "data": endpoint}

    await events.aclose()
    await manager.stop()


@pytest.mark.asyncio
async def test_sse_stream_ends_when_session_closed_elsewhere() -> None:
    manager = _manager()
    session = await manager.open_sse_session()
    events = manager.sse_events(session, "/mcp")
    await events.__anext__()

    await manager.store.close(session.id)

    with pytest.raises(StopAsyncIteration):
        await asyncio.wait_for(events.__anext__(), 1.0)
    await _until(lambda: manager.get(session.id) is None)
    assert session.is_closed

    await manager.stop()


@pytest.mark.asyncio
async def test_concurrent_requests_complete_out_of_order_exactly_once() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_sse_session()

    await manager.submit(
        session.id,
        _body([call_tool("wait", {"gate": "slow"}, request_id=1), call_tool("wait", {"gate": "fast"}, request_id=2)]),
    )
    assert set(session.in_flight) == {1, 2}
    assert session.state is SessionState.DISPATCHING

    gates.release("fast")
    first = await _next_message(session)
    assert first["id"] == 2
    assert first["result"]["content"][0]["text"] == "released fast"

    gates.release("slow")
    second = await _next_message(session)
    assert second["id"] == 1

    assert session.in_flight == {}
    assert session.state is SessionState.IDLE
    assert await session.outbound.next_frame(timeout=0.05) is None

    await manager.stop()


@pytest.mark.asyncio
async def test_close_during_flight_discards_result() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_sse_session()

    await manager.submit(session.id, _body(call_tool("wait", {"gate": "never"}, request_id=1)))
    await _settle()
    task = session.in_flight[1]

    assert await manager.close_session(session.id, reason="test") is True
    await asyncio.gather(task, return_exceptions=True)

    assert task.cancelled()
    assert session.is_closed
    assert await manager.store.get(session.id) is None
    with pytest.raises(ChannelClosedError):
        await session.outbound.next_frame(timeout=0.1)

    assert await manager.close_session(session.id) is False
    await manager.stop()


@pytest.mark.asyncio
async def test_cancelled_notification_suppresses_response() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_sse_session()

    await manager.submit(session.id, _body(call_tool("wait", {"gate": "held"}, request_id=5)))
    await _settle()
    await manager.submit(
        session.id,
        _body(rpc("notifications/cancelled", {"requestId": 5, "reason": "user"}, request_id=None)),
    )
    await _settle()

    assert session.in_flight == {}
    assert session.state is SessionState.IDLE

    gates.release("held")
    assert await session.outbound.next_frame(timeout=0.05) is None
    assert not session.is_closed

    await manager.stop()


@pytest.mark.asyncio
async def test_duplicate_in_flight_id_is_rejected() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_sse_session()

    await manager.submit(session.id, _body(call_tool("wait", {"gate": "g"}, request_id=1)))
    await manager.submit(session.id, _body(call_tool("echo", {"message": "again"}, request_id=1)))

    duplicate = await _next_message(session)
    assert duplicate["error"] == {"code": -32600, "message": "Duplicate request id: 1"}

    gates.release("g")
    original = await _next_message(session)
    assert original["result"]["content"][0]["text"] == "released g"

    await manager.stop()


# ---------------------------------------------------------------------------
# Streaming-HTTP sessions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_collect_responses_in_completion_order() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_streaming_session()

    asyncio.get_running_loop().call_later(0.05, gates.release, "later")
    responses = await manager.collect_responses(
        session,
        _body([call_tool("wait", {"gate": "later"}, request_id=1), call_tool("echo", {"message": "now"}, request_id=2)]),
    )

    assert [r["id"] for r in responses] == [2, 1]
    assert manager.get(session.id) is session
    assert await manager.store.get(session.id) is not None

    await manager.stop()


@pytest.mark.asyncio
async def test_ephemeral_session_closes_after_exchange() -> None:
    manager = _manager()
    session = await manager.open_streaming_session(ephemeral=True)
    assert await manager.store.get(session.id) is None

    responses = await manager.collect_responses(session, _body(call_tool("echo", {"message": "x"})))

    assert responses[0]["result"]["isError"] is False
    assert session.is_closed
    assert manager.get(session.id) is None
    assert manager.active_sessions == 0

    await manager.stop()


@pytest.mark.asyncio
async def test_stream_responses_yields_message_events() -> None:
    manager = _manager()
    session = await manager.open_streaming_session()

    frames = [f async for f in manager.stream_responses(session, _body(call_tool("echo", {"message": "s"}, request_id=3)))]

    assert len(frames) == 1
    assert frames[0]["event"] == "message"
    assert json.loads(frames[0]["data"])["id"] == 3

    await manager.stop()


# ---------------------------------------------------------------------------
# Idle reaping
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_reaper_skips_sessions_with_work_in_flight() -> None:
    gates = Gates()
    manager = _manager(gates, idle_timeout_s=0.05)
    idle = await manager.open_streaming_session()
    busy = await manager.open_streaming_session()

    pending = asyncio.create_task(
        manager.collect_responses(busy, _body(call_tool("wait", {"gate": "work"}, request_id=1)))
    )
    await _settle()
    await asyncio.sleep(0.1)

    reaped = await manager.reap_idle()

    assert reaped == [idle.id]
    assert idle.is_closed
    assert await manager.store.get(idle.id) is None
    assert not busy.is_closed

    gates.release("work")
    responses = await asyncio.wait_for(pending, 1.0)
    assert responses[0]["id"] == 1

    await manager.stop()


@pytest.mark.asyncio
async def test_reaper_respects_activity_recorded_in_store() -> None:
    manager = _manager(idle_timeout_s=0.05)
    session = await manager.open_streaming_session()
    await asyncio.sleep(0.1)

    # Activity seen by another instance only reaches this one through the store.
    await manager.store.touch(session.id)

    assert await manager.reap_idle() == []
    assert not session.is_closed

    await manager.stop()


# ---------------------------------------------------------------------------
# Cross-instance bridge
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_post_on_other_instance_is_delivered_to_stream_holder() -> None:
    fakeredis = pytest.importorskip("fakeredis")
    from backend.shared.sessions.redis_store import RedisSessionStore

    server = fakeredis.FakeServer()
    store_a = RedisSessionStore(fakeredis.aioredis.FakeRedis(server=server, decode_responses=True), instance_id="a")
    store_b = RedisSessionStore(fakeredis.aioredis.FakeRedis(server=server, decode_responses=True), instance_id="b")
    holder = _manager(store=store_a)
    other = _manager(store=store_b)

    session = await holder.open_sse_session()
    assert await other.session_mode(session.id) is TransportMode.SSE

    await other.submit(session.id, _body(call_tool("echo", {"message": "via b"}, request_id=1)))
    message = await _next_message(session, timeout=2.0)
    assert message["id"] == 1
    assert message["result"]["content"][0]["text"] == "Tool echo: via b"

    assert await other.close_session(session.id, reason="client request") is True
    await _until(lambda: session.is_closed)
    assert holder.get(session.id) is None
    assert await holder.session_mode(session.id) is None

    await holder.stop()
    await other.stop()
    await store_a.aclose()
    await store_b.aclose()


@pytest.mark.asyncio
async def test_streaming_session_closed_on_other_instance_returns_nothing() -> None:
    fakeredis = pytest.importorskip("fakeredis")
    from backend.shared.sessions.redis_store import RedisSessionStore

    server = fakeredis.FakeServer()
    store_a = RedisSessionStore(fakeredis.aioredis.FakeRedis(server=server, decode_responses=True), instance_id="a")
    store_b = RedisSessionStore(fakeredis.aioredis.FakeRedis(server=server, decode_responses=True), instance_id="b")
    gates = Gates()
    holder = _manager(gates, store=store_a)
    other = _manager(store=store_b)

    session = await holder.open_streaming_session()
    pending = asyncio.create_task(
        holder.collect_responses(session, _body(call_tool("wait", {"gate": "g"}, request_id=7)))
    )
    await _until(lambda: 7 in session.in_flight)
    assert set(session.in_flight) == {7}

    assert await other.close_session(session.id, reason="client request") is True
    await _until(lambda: session.is_closed)

    gates.release("g")
    assert await asyncio.wait_for(pending, 1.0) == []
    assert holder.get(session.id) is None

    await holder.stop()
    await other.stop()
    await store_a.aclose()
    await store_b.aclose()


@pytest.mark.asyncio
async def test_streaming_session_torn_down_by_store_close() -> None:
    gates = Gates()
    manager = _manager(gates)
    session = await manager.open_streaming_session()
    pending = asyncio.create_task(
        manager.collect_responses(session, _body(call_tool("wait", {"gate": "g"}, request_id=1)))
    )
    await _settle()

    await manager.store.close(session.id)
    await _until(lambda: session.is_closed)

    gates.release("g")
    assert await asyncio.wait_for(pending, 1.0) == []

    await manager.stop()


@pytest.mark.asyncio
async def test_proxy_session_discards_result_when_record_removed() -> None:
    gates = Gates()
    manager = _manager(gates)
    # Opened by another instance: this one only ever sees the shared record.
    await manager.store.open("remote-1", TransportMode.STREAMING_HTTP)
    proxy = manager.streaming_session("remote-1")
    assert proxy.bridge_task is None

    pending = asyncio.create_task(
        manager.collect_responses(proxy, _body(call_tool("wait", {"gate": "g"}, request_id=3)))
    )
    await _settle()

    await manager.store.close("remote-1")
    gates.release("g")

    assert await asyncio.wait_for(pending, 1.0) == []
    assert proxy.is_closed
    assert manager.get("remote-1") is None

    await manager.stop()


class _FailingBridgeStore(InMemorySessionStore):
    async def publish(self, session_id: str, message: Dict[str, Any]) -> None:
        if "message" in message:
            raise ConnectionError("bridge unavailable")
        await super().publish(session_id, message)


@pytest.mark.asyncio
async def test_failed_remote_delivery_is_logged(caplog) -> None:
    manager = _manager(store=_FailingBridgeStore())
    await manager.store.open("remote-sse", TransportMode.SSE)

    with caplog.at_level(logging.ERROR, logger="backend.api.transport.manager"):
        await manager.submit("remote-sse", _body(call_tool("echo", {"message": "x"}, request_id=1)))
        task = manager.get("remote-sse").in_flight[1]
        assert await asyncio.wait_for(task, 1.0) is None

    assert "response delivery failed request_id=1" in caplog.text
    assert manager.get("remote-sse").in_flight == {}

    await manager.stop()
