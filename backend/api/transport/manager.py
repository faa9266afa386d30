"""
backend.api.transport.manager

Purpose:
    Owns the process-local sessions: opening SSE and streaming-HTTP sessions,
    running each JSON-RPC request as its own task, delivering responses (to a
    local stream, over the store bridge, or back to the HTTP caller), closing
    sessions and reaping idle ones.

Design Notes:
    - One asyncio task per in-flight request; responses may complete out of order.
    - A response is delivered only if Session.finish() still finds its request
      id in flight, so teardown and cancellation silently discard results.
    - SSE: the instance holding the GET stream subscribes to the session's
      bridge channel. A POST that lands on another instance is dispatched there
      and its response is published on the bridge for the holder to forward.
    - Every stored session (SSE or streaming-HTTP) has a bridge subscriber on
      the instance that opened it. Closing a session anywhere publishes a close
      control message and that subscriber tears the local session down.
    - A request task re-checks the shared record before answering, which
      covers proxy sessions that have no subscriber of their own.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from contextlib import AsyncExitStack
from datetime import timedelta
from functools import partial
from typing import Any, AsyncIterator, Awaitable, Callable, Coroutine, Dict, List, Optional, Set

from backend.api.contracts.jsonrpc import (
    JsonRpcError,
    JsonRpcErrorCode,
    JsonRpcRequest,
    ParsedBody,
    error_response,
    success_response,
)
from backend.api.logging.request_context import session_id_ctx_var
from backend.api.transport.errors import TransportError
from backend.api.transport.protocol import NOTIFICATION_CANCELLED, McpProtocol
from backend.api.transport.session import Session, SessionState
from backend.shared.sessions import (
    ChannelClosedError,
    OutboundChannel,
    OutboundConflictError,
    SessionStore,
    TransportMode,
    is_close_message,
    utcnow,
)

logger = logging.getLogger(__name__)

# Bridge envelope: {"message": <JSON-RPC response>}
BRIDGE_MESSAGE_KEY = "message"

SSE_EVENT_ENDPOINT = "endpoint"
SSE_EVENT_MESSAGE = "message"

Deliver = Callable[[Dict[str, Any]], Awaitable[None]]


def new_session_id() -> str:
    return uuid.uuid4().hex


def message_frame(message: Dict[str, Any]) -> Dict[str, str]:
    return {"event": SSE_EVENT_MESSAGE, "data": json.dumps(message)}


class SessionManager:
    def __init__(
        self,
        store: SessionStore,
        protocol: McpProtocol,
        *,
        heartbeat_interval_s: float = 15.0,
        idle_timeout_s: float = 300.0,
        reap_interval_s: float = 30.0,
    ) -> None:
        self._store = store
        self._protocol = protocol
        self._heartbeat_interval_s = heartbeat_interval_s
        self._idle_timeout_s = idle_timeout_s
        self._reap_interval_s = reap_interval_s

        self._sessions: Dict[str, Session] = {}
        self._background: Set[asyncio.Task] = set()
        self._reaper: Optional[asyncio.Task] = None

    @property
    def store(self) -> SessionStore:
        return self._store

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    @property
    def active_sessions(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._reaper is None:
            self._reaper = asyncio.create_task(self._reap_loop(), name="session-reaper")

    async def stop(self) -> None:
        reaper, self._reaper = self._reaper, None
        if reaper is not None:
            reaper.cancel()
            await asyncio.gather(reaper, return_exceptions=True)

        for session_id in list(self._sessions):
            await self.close_session(session_id, reason="shutdown")

        pending = list(self._background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Opening sessions
    # ------------------------------------------------------------------

    async def open_sse_session(self) -> Session:
        session = Session(id=new_session_id(), transport_mode=TransportMode.SSE)
        channel = OutboundChannel(session.id)
        try:
            self._store.attach_outbound(session.id, channel)
        except OutboundConflictError as e:
            raise TransportError(str(e)) from e

        session.outbound = channel
        # Subscribe before the client learns its endpoint so no bridged response is missed.
        await self._open_record(session)
        session.transition(SessionState.OPEN)
        self._sessions[session.id] = session
        logger.info("sse session opened session_id=%s", session.id)
        return session

    async def open_streaming_session(self, *, ephemeral: bool = False) -> Session:
        session = Session(
            id=new_session_id(),
            transport_mode=TransportMode.STREAMING_HTTP,
            ephemeral=ephemeral,
        )
        if not ephemeral:
            # Subscribed too, so a DELETE served by another instance reaches this one.
            await self._open_record(session)
        session.transition(SessionState.OPEN)
        self._sessions[session.id] = session
        logger.info("streaming session opened session_id=%s ephemeral=%s", session.id, ephemeral)
        return session

    async def _open_record(self, session: Session) -> None:
        """Create the shared record and start the bridge subscriber for it."""
        stack = AsyncExitStack()
        try:
            await self._store.open(session.id, session.transport_mode)
            messages = await stack.enter_async_context(self._store.subscribe(session.id))
        except Exception:
            await stack.aclose()
            await self._store.close(session.id)
            raise

        session.bridge_task = asyncio.create_task(
            self._bridge(session, stack, messages), name=f"bridge-{session.id}"
        )

    async def session_mode(self, session_id: str) -> Optional[TransportMode]:
        """
        Transport mode of a live session (on any instance), or None if unknown/expired.
        A stale local copy of an expired session is closed on the way.
        """
        record = await self._store.get(session_id)
        if record is None:
            if session_id in self._sessions:
                await self.close_session(session_id, reason="expired")
            return None
        return record.transport_mode

    def _local_or_proxy(self, session_id: str, transport_mode: TransportMode) -> Session:
        """
        Local Session object for an id whose record exists in the store. Sessions
        created by another instance get a stream-less proxy here so this
        instance can track (and cancel) the requests it dispatches for them.
        """
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(id=session_id, transport_mode=transport_mode)
            session.transition(SessionState.OPEN)
            self._sessions[session_id] = session
        return session

    def streaming_session(self, session_id: str) -> Session:
        return self._local_or_proxy(session_id, TransportMode.STREAMING_HTTP)

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def submit(self, session_id: str, body: ParsedBody) -> None:
        """
        SSE mode: accept a POSTed body; every response is pushed onto the
        session's stream, here or on the instance that holds it.
        """
        session = self._local_or_proxy(session_id, TransportMode.SSE)
        await self._touch(session)

        if session.outbound is not None:
            deliver: Deliver = partial(self._deliver_local, session)
        else:
            deliver = partial(self._deliver_remote, session_id)

        for error in body.errors:
            await deliver(error)
        for request in body.requests:
            self._handle_message(session, request, deliver)

    async def collect_responses(self, session: Session, body: ParsedBody) -> List[Dict[str, Any]]:
        """Streaming-HTTP, JSON response: every response of the body, in completion order."""
        try:
            return [response async for response in self._responses(session, body)]
        finally:
            if session.ephemeral:
                await self.close_session(session.id, reason="ephemeral exchange complete")

    async def stream_responses(self, session: Session, body: ParsedBody) -> AsyncIterator[Dict[str, str]]:
        """Streaming-HTTP, SSE response: one `message` event per response as it completes."""
        try:
            async for response in self._responses(session, body):
                yield message_frame(response)
        finally:
            if session.ephemeral:
                self._schedule_close(session.id, reason="ephemeral exchange complete")

    async def _responses(self, session: Session, body: ParsedBody) -> AsyncIterator[Dict[str, Any]]:
        await self._touch(session)

        tasks: List[asyncio.Task] = []
        for request in body.requests:
            task = self._handle_message(session, request, None)
            if task is not None:
                tasks.append(task)

        try:
            for error in body.errors:
                yield error

            pending = set(tasks)
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    if task.cancelled():
                        continue
                    response = task.result()
                    if response is not None:
                        yield response
        finally:
            # The HTTP caller went away; nobody is left to read these results.
            for task in tasks:
                if not task.done():
                    task.cancel()

    def _handle_message(
        self,
        session: Session,
        request: JsonRpcRequest,
        deliver: Optional[Deliver],
    ) -> Optional[asyncio.Task]:
        if session.is_closed:
            logger.debug("dropping message for closed session method=%s", request.method)
            return None

        if request.is_notification:
            if request.method == NOTIFICATION_CANCELLED:
                self._cancel_request(session, request)
            else:
                self._protocol.handle_notification(session, request)
            return None

        if request.id in session.in_flight:
            duplicate = error_response(
                request.id,
                JsonRpcErrorCode.INVALID_REQUEST,
                f"Duplicate request id: {request.id}",
            )
            return self._spawn_background(self._respond_now(duplicate, deliver))

        task = asyncio.create_task(self._run(session, request, deliver))
        session.begin(request.id, task)
        return task

    def _cancel_request(self, session: Session, request: JsonRpcRequest) -> None:
        request_id = (request.params or {}).get("requestId")
        if request_id is None:
            return
        if session.cancel(request_id):
            reason = (request.params or {}).get("reason") or "-"
            logger.info("request cancelled by client request_id=%s reason=%s", request_id, reason)

    async def _respond_now(self, response: Dict[str, Any], deliver: Optional[Deliver]) -> Optional[Dict[str, Any]]:
        if deliver is None:
            return response
        try:
            await deliver(response)
        except Exception:
            logger.exception("response delivery failed request_id=%s", response.get("id"))
        return None

    async def _closed_elsewhere(self, session: Session) -> bool:
        """
        True if the shared record vanished while a request ran. Proxy sessions
        have no bridge subscriber, so this is how they learn about a remote close.
        """
        if session.ephemeral or session.is_closed:
            return False
        try:
            return not await self._store.exists(session.id)
        except Exception:
            logger.warning("session store unreachable; keeping session session_id=%s", session.id, exc_info=True)
            return False

    async def _run(
        self,
        session: Session,
        request: JsonRpcRequest,
        deliver: Optional[Deliver],
    ) -> Optional[Dict[str, Any]]:
        session_id_ctx_var.set(session.id)
        try:
            response = await self._execute(session, request)
            if await self._closed_elsewhere(session):
                await self.close_session(session.id, reason="closed by another instance")
        except asyncio.CancelledError:
            session.finish(request.id, asyncio.current_task())
            raise

        if not session.finish(request.id, asyncio.current_task()):
            logger.debug("discarding response for abandoned request id=%s", request.id)
            return None

        if deliver is None:
            return response
        try:
            await deliver(response)
        except Exception:
            logger.exception("response delivery failed request_id=%s", request.id)
        return None

    async def _execute(self, session: Session, request: JsonRpcRequest) -> Dict[str, Any]:
        try:
            result = await self._protocol.handle(session, request)
        except JsonRpcError as e:
            return e.to_response(request.id)
        except Exception:
            logger.exception("unhandled error in method=%s", request.method)
            return error_response(request.id, JsonRpcErrorCode.INTERNAL_ERROR, "Internal error")
        return success_response(request.id, result)

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _deliver_local(self, session: Session, message: Dict[str, Any]) -> None:
        channel = session.outbound
        if channel is None or session.is_closed:
            logger.debug("discarding message for closed session")
            return
        try:
            await channel.send(message_frame(message))
        except ChannelClosedError:
            logger.info("outbound channel closed; closing session")
            await self.close_session(session.id, reason="outbound closed")

    async def _deliver_remote(self, session_id: str, message: Dict[str, Any]) -> None:
        if not await self._store.exists(session_id):
            logger.debug("discarding message for session closed elsewhere")
            return
        await self._store.publish(session_id, {BRIDGE_MESSAGE_KEY: message})

    async def _bridge(self, session: Session, stack: AsyncExitStack, messages: AsyncIterator[Dict[str, Any]]) -> None:
        session_id_ctx_var.set(session.id)
        try:
            async for message in messages:
                if is_close_message(message):
                    await self.close_session(session.id, reason="closed by another instance")
                    return
                payload = message.get(BRIDGE_MESSAGE_KEY) if isinstance(message, dict) else None
                if payload is None:
                    continue
                await self._deliver_local(session, payload)
                if session.is_closed:
                    return
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("bridge subscriber failed; closing session")
            self._schedule_close(session.id, reason="bridge failure")
        finally:
            await stack.aclose()

    # ------------------------------------------------------------------
    # SSE stream
    # ------------------------------------------------------------------

    async def sse_events(self, session: Session, endpoint: str) -> AsyncIterator[Dict[str, str]]:
        """
        Event source for a GET stream: the `endpoint` event, then every frame
        written to the session's outbound channel. Wakes once per heartbeat
        interval to refresh liveness. Ending (or abandoning) the iteration
        closes the session.
        """
        channel = session.outbound
        if channel is None:
            raise TransportError(f"session {session.id} has no outbound channel")

        try:
            yield {"event": SSE_EVENT_ENDPOINT, "data": endpoint}
            while True:
                try:
                    frame = await channel.next_frame(timeout=self._heartbeat_interval_s)
                except ChannelClosedError:
                    return
                if frame is None:
                    if not await self._heartbeat(session):
                        return
                    continue
                yield frame
        finally:
            self._schedule_close(session.id, reason="stream ended")

    async def _heartbeat(self, session: Session) -> bool:
        if session.is_closed:
            return False
        session.touch()
        if not await self._store.touch(session.id):
            logger.info("session record expired; ending stream session_id=%s", session.id)
            return False
        return True

    async def _touch(self, session: Session) -> None:
        session.touch()
        if not session.ephemeral:
            await self._store.touch(session.id)

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    async def close_session(self, session_id: str, *, reason: str = "closed") -> bool:
        """
        Tear a session down everywhere. Cancels in-flight requests, closes the
        outbound stream and removes the shared record. Returns False if there
        was nothing left to close.
        """
        session = self._sessions.pop(session_id, None)
        closed_here = False

        if session is not None and not session.is_closed:
            session.transition(SessionState.CLOSED)
            current = asyncio.current_task()

            abandoned = session.abandon_all()
            for task in abandoned:
                if task is not current:
                    task.cancel()

            bridge = session.bridge_task
            if bridge is not None and bridge is not current and not bridge.done():
                bridge.cancel()

            if session.outbound is not None:
                session.outbound.close()

            closed_here = True
            logger.info(
                "session closed session_id=%s reason=%s abandoned=%d",
                session_id,
                reason,
                len(abandoned),
            )

        if session is not None and session.ephemeral:
            return closed_here

        removed = await self._store.close(session_id)
        return closed_here or removed

    def _schedule_close(self, session_id: str, *, reason: str) -> None:
        # Stream generators run inside the server's cancel scope; close from a fresh task.
        if session_id not in self._sessions:
            return
        self._spawn_background(self.close_session(session_id, reason=reason))

    def _spawn_background(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # ------------------------------------------------------------------
    # Idle reaping
    # ------------------------------------------------------------------

    async def reap_idle(self) -> List[str]:
        """Close sessions with no in-flight work and no activity within the idle timeout."""
        cutoff = utcnow() - timedelta(seconds=self._idle_timeout_s)
        reaped: List[str] = []

        for session in list(self._sessions.values()):
            if session.in_flight or session.last_activity_at > cutoff:
                continue
            if not session.ephemeral:
                # Other instances may have seen activity this one has not.
                record = await self._store.get(session.id)
                if record is not None and record.last_activity_at > cutoff:
                    session.last_activity_at = record.last_activity_at
                    continue
            await self.close_session(session.id, reason="idle timeout")
            reaped.append(session.id)

        return reaped

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self._reap_interval_s)
            try:
                reaped = await self.reap_idle()
            except Exception:
                logger.exception("idle reaper pass failed")
                continue
            if reaped:
                logger.info("reaped %d idle session(s)", len(reaped))
