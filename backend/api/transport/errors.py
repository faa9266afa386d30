"""
backend.api.transport.errors

Purpose:
    Transport-level exception types. A TransportError ends (at most) the
    affected session; it never takes down the process or other sessions.

Author:
    Kanir Pandya

Created:
    2026-10-19
"""

from __future__ import annotations


class TransportError(RuntimeError):
    pass


class IllegalTransitionError(TransportError):
    pass
