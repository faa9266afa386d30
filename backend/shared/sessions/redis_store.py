"""
backend.shared.sessions.redis_store

Purpose:
    Redis-backed Session Store for running several stateless server instances
    behind a load balancer.

Redis keys:
    <prefix>session:<id>  -> hash {session_id, transport_mode, created_at, last_activity_at, owner}
                             TTL = idle timeout, refreshed by touch()
    <prefix>channel:<id>  -> pub/sub channel carrying JSON messages for the
                             instance that holds the session's stream

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import WatchError

from backend.shared.sessions.base import SessionStore, Subscription
from backend.shared.sessions.models import SessionRecord, TransportMode, utcnow

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "toolbridge:"


class _RedisSubscription(Subscription):
    def __init__(self, client: redis.Redis, channel: str) -> None:
        self._client = client
        self._channel = channel
        self._pubsub: Optional[Any] = None

    async def __aenter__(self) -> AsyncIterator[Dict[str, Any]]:
        self._pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        await self._pubsub.subscribe(self._channel)
        return self._iterate()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is None:
            return
        try:
            await pubsub.unsubscribe(self._channel)
        finally:
            await pubsub.aclose()

    async def _iterate(self) -> AsyncIterator[Dict[str, Any]]:
        assert self._pubsub is not None
        async for raw in self._pubsub.listen():
            if raw.get("type") != "message":
                continue
            data = raw.get("data")
            try:
                yield json.loads(data)
            except (TypeError, ValueError):
                logger.warning("dropping undecodable bridge message on %s", self._channel)


class RedisSessionStore(SessionStore):
    def __init__(
        self,
        client: redis.Redis,
        *,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        ttl_seconds: int = 300,
        instance_id: str | None = None,
    ) -> None:
        super().__init__(instance_id)
        self._client = client
        self._prefix = key_prefix
        self._ttl = max(int(ttl_seconds), 1)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisSessionStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=2.0,
        )
        return cls(client, **kwargs)

    def _record_key(self, session_id: str) -> str:
        return f"{self._prefix}session:{session_id}"

    def channel_name(self, session_id: str) -> str:
        return f"{self._prefix}channel:{session_id}"

    async def open(self, session_id: str, transport_mode: TransportMode) -> SessionRecord:
        record = SessionRecord(session_id=session_id, transport_mode=transport_mode, owner=self.instance_id)
        key = self._record_key(session_id)
        mapping = {k: str(v) for k, v in record.model_dump(mode="json").items()}

        async with self._client.pipeline(transaction=True) as pipe:
            pipe.hset(key, mapping=mapping)
            pipe.expire(key, self._ttl)
            await pipe.execute()
        return record

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        key = self._record_key(session_id)
        data = await self._client.hgetall(key)
        if not data:
            return None
        try:
            return SessionRecord.model_validate(data)
        except ValidationError:
            logger.warning("ignoring malformed session record key=%s fields=%s", key, sorted(data))
            return None

    async def exists(self, session_id: str) -> bool:
        return bool(await self._client.exists(self._record_key(session_id)))

    async def touch(self, session_id: str) -> bool:
        key = self._record_key(session_id)
        # WATCH + MULTI: the HSET must never recreate a record that expired or was
        # deleted after the existence check.
        async with self._client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if not await pipe.exists(key):
                    return False
                pipe.multi()
                pipe.hset(key, "last_activity_at", utcnow().isoformat())
                pipe.expire(key, self._ttl)
                await pipe.execute()
            except WatchError:
                # Touched, closed or expired concurrently; the record decides.
                return await self.exists(session_id)
        return True

    async def _delete(self, session_id: str) -> bool:
        return bool(await self._client.delete(self._record_key(session_id)))

    async def publish(self, session_id: str, message: Dict[str, Any]) -> None:
        await self._client.publish(self.channel_name(session_id), json.dumps(message))

    def subscribe(self, session_id: str) -> _RedisSubscription:
        return _RedisSubscription(self._client, self.channel_name(session_id))

    async def aclose(self) -> None:
        await super().aclose()
        await self._client.aclose()
