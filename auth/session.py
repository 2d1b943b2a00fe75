"""
auth/session.py -- Expiration math and session state classification.

All timestamps are epoch milliseconds, the unit session records are stored
in. Given now = t:

    t <  active_expires              -> "active"
    active_expires <= t < idle_expires -> "idle"   (valid, renewed on validate)
    t >= idle_expires                -> dead     (rejected, prunable)

Pure functions only -- no adapter access.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

from auth.models import SessionRecord, SessionState


def now_ms() -> int:
    return int(time.time() * 1000)


def to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(int(timestamp_ms) / 1000, tz=timezone.utc)


def is_within_expiration(expires_ms: int, now: int | None = None) -> bool:
    current = now_ms() if now is None else now
    return current < int(expires_ms)


def is_valid_session_record(record: SessionRecord, now: int | None = None) -> bool:
    """Return False for dead sessions (past their idle expiry)."""
    return is_within_expiration(record["idle_expires"], now)


def get_session_state(record: SessionRecord, now: int | None = None) -> SessionState | None:
    """Classify a stored session. Returns None when the session is dead."""
    current = now_ms() if now is None else now
    if is_within_expiration(record["active_expires"], current):
        return "active"
    if is_within_expiration(record["idle_expires"], current):
        return "idle"
    return None


def new_session_expiration(active_period: int, idle_period: int, now: int | None = None) -> tuple[int, int]:
    """Return (active_expires, idle_expires) for a session created or renewed now.

    The idle window is stacked on top of the active window, which keeps
    idle_expires >= active_expires for any non-negative idle_period.
    """
    current = now_ms() if now is None else now
    active_expires = current + active_period
    idle_expires = active_expires + idle_period
    return active_expires, idle_expires
