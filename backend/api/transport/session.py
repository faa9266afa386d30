"""
backend.api.transport.session

Purpose:
    Process-local session object and its lifecycle state machine.

Design Notes:
    CONNECTING -> OPEN -> {IDLE <-> DISPATCHING} -> CLOSED
    - CLOSED is terminal and reachable from every other state.
    - DISPATCHING while any request is in flight, IDLE when none.
    - in_flight maps request id -> asyncio.Task; a request is answered only if
      finish() still finds it there, which makes delivery exactly-once and lets
      teardown abandon everything by clearing the map.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from backend.api.contracts.jsonrpc import RequestId
from backend.api.transport.errors import IllegalTransitionError
from backend.shared.sessions import OutboundChannel, TransportMode, utcnow


class SessionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    IDLE = "idle"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


_ALLOWED: Dict[SessionState, frozenset] = {
    SessionState.CONNECTING: frozenset({SessionState.OPEN, SessionState.CLOSED}),
    SessionState.OPEN: frozenset({SessionState.IDLE, SessionState.DISPATCHING, SessionState.CLOSED}),
    SessionState.IDLE: frozenset({SessionState.DISPATCHING, SessionState.CLOSED}),
    SessionState.DISPATCHING: frozenset({SessionState.IDLE, SessionState.CLOSED}),
    SessionState.CLOSED: frozenset(),
}


@dataclass(eq=False)
class Session:
    id: str
    transport_mode: TransportMode
    created_at: datetime = field(default_factory=utcnow)
    last_activity_at: datetime = field(default_factory=utcnow)
    state: SessionState = SessionState.CONNECTING
    outbound: Optional[OutboundChannel] = None
    in_flight: Dict[RequestId, asyncio.Task] = field(default_factory=dict)

    # Closed by the transport once its single exchange is answered.
    ephemeral: bool = False
    protocol_version: Optional[str] = None
    client_info: Optional[dict] = None
    initialized: bool = False

    bridge_task: Optional[asyncio.Task] = None

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    def transition(self, new_state: SessionState) -> None:
        if new_state is self.state:
            return
        if new_state not in _ALLOWED[self.state]:
            raise IllegalTransitionError(
                f"session {self.id}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state

    def touch(self) -> None:
        self.last_activity_at = utcnow()

    def begin(self, request_id: RequestId, task: asyncio.Task) -> None:
        self.in_flight[request_id] = task
        self.transition(SessionState.DISPATCHING)

    def finish(self, request_id: RequestId, task: Optional[asyncio.Task] = None) -> bool:
        """
        Release a request id. Returns True only for the first caller while the
        session is still live; False means the result must be discarded.
        """
        current = self.in_flight.get(request_id)
        if current is None or (task is not None and current is not task):
            return False
        del self.in_flight[request_id]
        if self.is_closed:
            return False
        if not self.in_flight:
            self.transition(SessionState.IDLE)
        self.touch()
        return True

    def abandon_all(self) -> List[asyncio.Task]:
        tasks = list(self.in_flight.values())
        self.in_flight.clear()
        return tasks

    def cancel(self, request_id: RequestId) -> bool:
        """Cancel one in-flight request; its result will never be delivered."""
        task = self.in_flight.pop(request_id, None)
        if task is None:
            return False
        task.cancel()
        if not self.in_flight and not self.is_closed:
            self.transition(SessionState.IDLE)
        return True
