"""
tests/fakes.py -- In-memory stand-ins for the storage adapter contract.

MemoryAdapter copies records on the way in and out, like a real store would,
so tests cannot mutate "persisted" state through a returned dict. Tests that
simulate time passing edit the stored session timestamps directly via
adapter.sessions. Every call is appended to adapter.calls for ordering
assertions.
"""

from __future__ import annotations

from typing import Any

from auth.errors import DuplicateKeyIdError, InvalidRequestError
from auth.models import KeyRecord, SessionRecord, UserRecord


class MemoryAdapter:
    """Dict-backed adapter. Records call counts for ordering assertions."""

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.keys: dict[str, dict] = {}
        self.sessions: dict[str, dict] = {}
        self.calls: list[str] = []

    # -- users --------------------------------------------------------

    async def get_user(self, user_id: str) -> UserRecord | None:
        self.calls.append("get_user")
        record = self.users.get(user_id)
        return dict(record) if record is not None else None

    async def set_user(self, user: UserRecord, key: KeyRecord | None) -> None:
        self.calls.append("set_user")
        if user["id"] in self.users:
            raise InvalidRequestError("Duplicate user id.")
        if key is not None and key["id"] in self.keys:
            raise DuplicateKeyIdError()
        self.users[user["id"]] = dict(user)
        if key is not None:
            self.keys[key["id"]] = dict(key)

    async def update_user(self, user_id: str, attributes: dict[str, Any]) -> None:
        self.calls.append("update_user")
        self.users[user_id].update(attributes)

    async def delete_user(self, user_id: str) -> None:
        self.calls.append("delete_user")
        self.users.pop(user_id, None)

    # -- keys ---------------------------------------------------------

    async def get_key(self, key_id: str) -> KeyRecord | None:
        self.calls.append("get_key")
        record = self.keys.get(key_id)
        return dict(record) if record is not None else None

    async def get_keys_by_user_id(self, user_id: str) -> list[KeyRecord]:
        self.calls.append("get_keys_by_user_id")
        return [dict(k) for k in self.keys.values() if k["user_id"] == user_id]

    async def set_key(self, key: KeyRecord) -> None:
        self.calls.append("set_key")
        if key["id"] in self.keys:
            raise DuplicateKeyIdError()
        self.keys[key["id"]] = dict(key)

    async def update_key(self, key_id: str, partial_key: dict[str, Any]) -> None:
        self.calls.append("update_key")
        self.keys[key_id].update(partial_key)

    async def delete_key(self, key_id: str) -> None:
        self.calls.append("delete_key")
        self.keys.pop(key_id, None)

    async def delete_keys_by_user_id(self, user_id: str) -> None:
        self.calls.append("delete_keys_by_user_id")
        for key_id in [k for k, v in self.keys.items() if v["user_id"] == user_id]:
            del self.keys[key_id]

    # -- sessions -----------------------------------------------------

    async def get_session(self, session_id: str) -> SessionRecord | None:
        self.calls.append("get_session")
        record = self.sessions.get(session_id)
        return dict(record) if record is not None else None

    async def get_sessions_by_user_id(self, user_id: str) -> list[SessionRecord]:
        self.calls.append("get_sessions_by_user_id")
        return [dict(s) for s in self.sessions.values() if s["user_id"] == user_id]

    async def set_session(self, session: SessionRecord) -> None:
        self.calls.append("set_session")
        self.sessions[session["id"]] = dict(session)

    async def update_session(self, session_id: str, partial_session: dict[str, Any]) -> None:
        self.calls.append("update_session")
        self.sessions[session_id].update(partial_session)

    async def delete_session(self, session_id: str) -> None:
        self.calls.append("delete_session")
        self.sessions.pop(session_id, None)

    async def delete_sessions_by_user_id(self, user_id: str) -> None:
        self.calls.append("delete_sessions_by_user_id")
        for session_id in [k for k, v in self.sessions.items() if v["user_id"] == user_id]:
            del self.sessions[session_id]


class MemorySessionAndUserAdapter(MemoryAdapter):
    async def get_session_and_user(self, session_id: str):
        self.calls.append("get_session_and_user")
        session = self.sessions.get(session_id)
        if session is None:
            return None, None
        user = self.users.get(session["user_id"])
        return dict(session), dict(user) if user is not None else None


