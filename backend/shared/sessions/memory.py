"""
backend.shared.sessions.memory

Purpose:
    Single-process Session Store. Used when no REDIS_URL is configured and in
    tests. Pub/sub is a set of asyncio queues per session.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Dict, Optional, Set

from backend.shared.sessions.base import SessionStore, Subscription
from backend.shared.sessions.models import SessionRecord, TransportMode, utcnow


class _MemorySubscription(Subscription):
    def __init__(self, store: "InMemorySessionStore", session_id: str) -> None:
        self._store = store
        self._session_id = session_id
        self._queue: asyncio.Queue[Dict[str, Any]] = asyncio.Queue()

    async def __aenter__(self) -> AsyncIterator[Dict[str, Any]]:
        self._store._subscribers.setdefault(self._session_id, set()).add(self._queue)
        return self._iterate()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        queues = self._store._subscribers.get(self._session_id)
        if queues is not None:
            queues.discard(self._queue)
            if not queues:
                self._store._subscribers.pop(self._session_id, None)

    async def _iterate(self) -> AsyncIterator[Dict[str, Any]]:
        while True:
            yield await self._queue.get()


class InMemorySessionStore(SessionStore):
    def __init__(self, instance_id: str | None = None) -> None:
        super().__init__(instance_id)
        self._records: Dict[str, SessionRecord] = {}
        self._subscribers: Dict[str, Set[asyncio.Queue]] = {}

    async def open(self, session_id: str, transport_mode: TransportMode) -> SessionRecord:
        record = SessionRecord(session_id=session_id, transport_mode=transport_mode, owner=self.instance_id)
        self._records[session_id] = record
        return record

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        return self._records.get(session_id)

    async def touch(self, session_id: str) -> bool:
        record = self._records.get(session_id)
        if record is None:
            return False
        self._records[session_id] = record.model_copy(update={"last_activity_at": utcnow()})
        return True

    async def _delete(self, session_id: str) -> bool:
        return self._records.pop(session_id, None) is not None

    async def publish(self, session_id: str, message: Dict[str, Any]) -> None:
        for queue in list(self._subscribers.get(session_id, ())):
            queue.put_nowait(message)

    def subscribe(self, session_id: str) -> _MemorySubscription:
        return _MemorySubscription(self, session_id)

    async def aclose(self) -> None:
        await super().aclose()
        self._records.clear()
        self._subscribers.clear()
