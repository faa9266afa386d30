"""
backend.shared.sessions.models

Purpose:
    Shared session record + process-local outbound channel types.

Design Notes:
    - SessionRecord is what every instance can see (stored in the Session Store).
    - OutboundChannel is the live delivery path of the instance that holds the
      client's stream; it never leaves the process.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransportMode(str, Enum):
    SSE = "sse"
    STREAMING_HTTP = "streaming-http"


class SessionRecord(BaseModel):
    session_id: str
    transport_mode: TransportMode
    created_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    owner: str = Field(default="", description="Instance id holding the outbound stream")


class ChannelClosedError(RuntimeError):
    """Write attempted on an outbound channel that is already closed."""


_CLOSE = object()


class OutboundChannel:
    """
    FIFO of frames destined for one client connection.

    The transport's stream generator drains it with frames(); writers call
    send(). Closing wakes the reader and makes later writes fail.
    """

    def __init__(self, session_id: str, maxsize: int = 0) -> None:
        self.session_id = session_id
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, frame: Dict[str, Any]) -> None:
        if self._closed:
            raise ChannelClosedError(f"outbound channel for session {self.session_id} is closed")
        await self._queue.put(frame)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSE)

    async def next_frame(self, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """
        Next frame, or None on timeout. Raises ChannelClosedError once the
        channel has been closed and drained.
        """
        try:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSE:
            raise ChannelClosedError(f"outbound channel for session {self.session_id} is closed")
        return item

    async def frames(self) -> AsyncIterator[Dict[str, Any]]:
        while True:
            try:
                frame = await self.next_frame()
            except ChannelClosedError:
                return
            if frame is not None:
                yield frame
