"""
auth/models.py -- Record shapes and domain dataclasses for auth entities.

Two layers of shape live here:

  *Record TypedDicts describe what a storage adapter reads and writes. Only
      the listed keys are required; any extra key on a user or session record
      is an application attribute and is passed through verbatim.

  User / Key / Session dataclasses are what the engine hands back to callers.
      Application attributes are carried in an explicit `attributes` dict
      produced by the configured transform (get_user_attributes /
      get_session_attributes), never as dynamic fields.

Pattern: Data class (pure data container, zero logic). The engine owns the
record -> dataclass mapping.

Layer rule: stdlib only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, TypedDict

SessionState = Literal["active", "idle"]


# ---------------------------------------------------------------------------
# Stored records (adapter contract)
# ---------------------------------------------------------------------------


class UserRecord(TypedDict):
    id: str


class KeyRecord(TypedDict):
    id: str  # "<provider_id>:<provider_user_id>"
    user_id: str
    hashed_password: str | None  # None = passwordless key


class SessionRecord(TypedDict):
    id: str
    user_id: str
    active_expires: int  # epoch milliseconds
    idle_expires: int  # epoch milliseconds, always >= active_expires


# ---------------------------------------------------------------------------
# Domain objects
# ---------------------------------------------------------------------------


@dataclass
class User:
    user_id: str
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass
class Key:
    """One authentication method bound to a user.

    password_defined is derived from the stored digest at read time; the
    digest itself never leaves the engine.
    """

    user_id: str
    provider_id: str
    provider_user_id: str
    password_defined: bool


@dataclass
class KeyDescriptor:
    """Key to create alongside a user in Auth.create_user().

    password=None creates a passwordless key (e.g. an OAuth identity).
    """

    provider_id: str
    provider_user_id: str
    password: str | None = None


@dataclass
class Session:
    """A validated, non-dead session.

    state is "active" before active_period_expires_at and "idle" between the
    two expiries. fresh is True only on the object returned by a renewal --
    it is never persisted and tells the caller to re-issue the cookie.
    """

    session_id: str
    user: User
    active_period_expires_at: datetime
    idle_period_expires_at: datetime
    state: SessionState
    fresh: bool = False
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def user_id(self) -> str:
        return self.user.user_id
