"""
auth/adapter.py -- Storage adapter contract.

sessionkeep ships no storage backend. Anything that implements these async
methods against a store can back the engine: SQL, a document database, Redis,
or a dict in tests.

Contract:
  UserAdapter       users + keys
  SessionAdapter    sessions
  Adapter           both of the above
  SessionAndUserAdapter   optional capability -- fetch a session and its user
                    in one round trip. The engine probes for it once, at
                    construction, and falls back to two sequential reads.

Absence is signalled by returning None (single reads) or an empty list
(by-user reads). Uniqueness and atomicity belong to the adapter: set_user()
must write the user and its optional key together, and a duplicate key id
should surface as auth.errors.DuplicateKeyIdError. Any other exception an
adapter raises reaches the caller unwrapped.

Split adapters: create_adapter({"user": ..., "session": ...}) combines a user
adapter and a session adapter (e.g. users in Postgres, sessions in Redis).
A split adapter never offers the combined fetch, since the two records live
in different stores.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from auth.models import KeyRecord, SessionRecord, UserRecord


@runtime_checkable
class UserAdapter(Protocol):
    async def get_user(self, user_id: str) -> UserRecord | None: ...

    async def set_user(self, user: UserRecord, key: KeyRecord | None) -> None: ...

    async def update_user(self, user_id: str, attributes: dict[str, Any]) -> None: ...

    async def delete_user(self, user_id: str) -> None: ...

    async def get_key(self, key_id: str) -> KeyRecord | None: ...

    async def get_keys_by_user_id(self, user_id: str) -> list[KeyRecord]: ...

    async def set_key(self, key: KeyRecord) -> None: ...

    async def update_key(self, key_id: str, partial_key: dict[str, Any]) -> None: ...

    async def delete_key(self, key_id: str) -> None: ...

    async def delete_keys_by_user_id(self, user_id: str) -> None: ...


@runtime_checkable
class SessionAdapter(Protocol):
    async def get_session(self, session_id: str) -> SessionRecord | None: ...

    async def get_sessions_by_user_id(self, user_id: str) -> list[SessionRecord]: ...

    async def set_session(self, session: SessionRecord) -> None: ...

    async def update_session(self, session_id: str, partial_session: dict[str, Any]) -> None: ...

    async def delete_session(self, session_id: str) -> None: ...

    async def delete_sessions_by_user_id(self, user_id: str) -> None: ...


@runtime_checkable
class Adapter(UserAdapter, SessionAdapter, Protocol):
    pass


@runtime_checkable
class SessionAndUserAdapter(Protocol):
    async def get_session_and_user(
        self, session_id: str
    ) -> tuple[SessionRecord | None, UserRecord | None]: ...


class SplitAdapter:
    """Routes user/key calls to one adapter and session calls to another."""

    def __init__(self, user: UserAdapter, session: SessionAdapter) -> None:
        self.user_adapter = user
        self.session_adapter = session

    # -- users / keys -------------------------------------------------

    async def get_user(self, user_id: str) -> UserRecord | None:
        return await self.user_adapter.get_user(user_id)

    async def set_user(self, user: UserRecord, key: KeyRecord | None) -> None:
        await self.user_adapter.set_user(user, key)

    async def update_user(self, user_id: str, attributes: dict[str, Any]) -> None:
        await self.user_adapter.update_user(user_id, attributes)

    async def delete_user(self, user_id: str) -> None:
        await self.user_adapter.delete_user(user_id)

    async def get_key(self, key_id: str) -> KeyRecord | None:
        return await self.user_adapter.get_key(key_id)

    async def get_keys_by_user_id(self, user_id: str) -> list[KeyRecord]:
        return await self.user_adapter.get_keys_by_user_id(user_id)

    async def set_key(self, key: KeyRecord) -> None:
        await self.user_adapter.set_key(key)

    async def update_key(self, key_id: str, partial_key: dict[str, Any]) -> None:
        await self.user_adapter.update_key(key_id, partial_key)

    async def delete_key(self, key_id: str) -> None:
        await self.user_adapter.delete_key(key_id)

    async def delete_keys_by_user_id(self, user_id: str) -> None:
        await self.user_adapter.delete_keys_by_user_id(user_id)

    # -- sessions -----------------------------------------------------

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return await self.session_adapter.get_session(session_id)

    async def get_sessions_by_user_id(self, user_id: str) -> list[SessionRecord]:
        return await self.session_adapter.get_sessions_by_user_id(user_id)

    async def set_session(self, session: SessionRecord) -> None:
        await self.session_adapter.set_session(session)

    async def update_session(self, session_id: str, partial_session: dict[str, Any]) -> None:
        await self.session_adapter.update_session(session_id, partial_session)

    async def delete_session(self, session_id: str) -> None:
        await self.session_adapter.delete_session(session_id)

    async def delete_sessions_by_user_id(self, user_id: str) -> None:
        await self.session_adapter.delete_sessions_by_user_id(user_id)


AdapterConfig = Adapter | Mapping[str, Any]


def create_adapter(config: AdapterConfig) -> Adapter:
    """Normalize the adapter argument of Auth into a single Adapter.

    Accepts a full adapter, or a mapping with "user" and "session" entries.
    """
    if isinstance(config, Mapping):
        try:
            user, session = config["user"], config["session"]
        except KeyError as exc:
            raise ValueError(f"Split adapter config is missing {exc.args[0]!r}.") from None
        if not isinstance(user, UserAdapter):
            raise TypeError("adapter['user'] does not implement UserAdapter.")
        if not isinstance(session, SessionAdapter):
            raise TypeError("adapter['session'] does not implement SessionAdapter.")
        return SplitAdapter(user=user, session=session)
    if not isinstance(config, Adapter):
        raise TypeError(f"{type(config).__name__} does not implement the Adapter contract.")
    return config


def supports_session_and_user(adapter: object) -> bool:
    """True if the adapter can fetch a session and its user in one call."""
    return isinstance(adapter, SessionAndUserAdapter)
