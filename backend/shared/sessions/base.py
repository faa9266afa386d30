"""
backend.shared.sessions.base

Purpose:
    Session Store contract shared by the in-memory and Redis backends.

Design Notes:
    - Records (open/get/touch/close) are visible to every server instance.
    - attach_outbound/outbound are process-local: only the instance holding a
      client's stream has a channel for it.
    - publish/subscribe is the cross-instance bridge. Delivery is FIFO per
      session channel and at-most-once; a subscriber that is not connected
      when a message is published never sees it.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, AsyncIterator, Dict, Optional

from backend.shared.sessions.models import OutboundChannel, SessionRecord, TransportMode

# Published on a session channel when the session is closed by any instance.
CONTROL_KEY = "__control__"
CONTROL_CLOSE = "close"


def close_message() -> Dict[str, Any]:
    return {CONTROL_KEY: CONTROL_CLOSE}


def is_close_message(message: Any) -> bool:
    return isinstance(message, dict) and message.get(CONTROL_KEY) == CONTROL_CLOSE


class SessionStoreError(RuntimeError):
    pass


class OutboundConflictError(SessionStoreError):
    """A second live outbound channel was attached to the same session id."""


class Subscription(ABC):
    """
    Async context manager + async iterator over messages for one session.

    The subscription is live once __aenter__ returns; each subscribe() call
    creates a fresh one, so a dropped subscriber can simply subscribe again.
    """

    @abstractmethod
    async def __aenter__(self) -> AsyncIterator[Dict[str, Any]]:
        ...

    @abstractmethod
    async def __aexit__(self, exc_type, exc, tb) -> None:
        ...


class SessionStore(ABC):
    def __init__(self, instance_id: str | None = None) -> None:
        self.instance_id = instance_id or uuid.uuid4().hex[:12]
        self._outbound: Dict[str, OutboundChannel] = {}

    # ------------------------------------------------------------------
    # Shared records
    # ------------------------------------------------------------------

    @abstractmethod
    async def open(self, session_id: str, transport_mode: TransportMode) -> SessionRecord:
        ...

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionRecord]:
        ...

    async def exists(self, session_id: str) -> bool:
        return await self.get(session_id) is not None

    @abstractmethod
    async def touch(self, session_id: str) -> bool:
        """Refresh liveness; False if the session is unknown/expired."""

    @abstractmethod
    async def _delete(self, session_id: str) -> bool:
        ...

    async def close(self, session_id: str) -> bool:
        """
        Remove the record, drop the local outbound binding and tell any remote
        holder to tear down. Returns False (and does nothing else) if the
        session was already closed.
        """
        channel = self._outbound.pop(session_id, None)
        if channel is not None:
            channel.close()

        removed = await self._delete(session_id)
        if removed:
            await self.publish(session_id, close_message())
        return removed

    # ------------------------------------------------------------------
    # Process-local delivery path
    # ------------------------------------------------------------------

    def attach_outbound(self, session_id: str, channel: OutboundChannel) -> None:
        current = self._outbound.get(session_id)
        if current is not None and current is not channel and not current.closed:
            raise OutboundConflictError(f"session {session_id} already has a live outbound channel")
        self._outbound[session_id] = channel

    def outbound(self, session_id: str) -> Optional[OutboundChannel]:
        channel = self._outbound.get(session_id)
        if channel is None or channel.closed:
            return None
        return channel

    def detach_outbound(self, session_id: str) -> None:
        self._outbound.pop(session_id, None)

    # ------------------------------------------------------------------
    # Cross-instance bridge
    # ------------------------------------------------------------------

    @abstractmethod
    async def publish(self, session_id: str, message: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def subscribe(self, session_id: str) -> AsyncContextManager[AsyncIterator[Dict[str, Any]]]:
        ...

    async def aclose(self) -> None:
        for channel in list(self._outbound.values()):
            channel.close()
        self._outbound.clear()
