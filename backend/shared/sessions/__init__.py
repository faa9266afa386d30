"""
Session Store: shared session records + cross-instance message bridge.
"""

from .base import (
    CONTROL_CLOSE,
    CONTROL_KEY,
    OutboundConflictError,
    SessionStore,
    SessionStoreError,
    Subscription,
    close_message,
    is_close_message,
)
from .memory import InMemorySessionStore
from .models import ChannelClosedError, OutboundChannel, SessionRecord, TransportMode, utcnow

__all__ = [
    "CONTROL_CLOSE",
    "CONTROL_KEY",
    "ChannelClosedError",
    "InMemorySessionStore",
    "OutboundChannel",
    "OutboundConflictError",
    "SessionRecord",
    "SessionStore",
    "SessionStoreError",
    "Subscription",
    "TransportMode",
    "close_message",
    "is_close_message",
    "utcnow",
]
