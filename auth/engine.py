"""
auth/engine.py -- Session and key lifecycle engine.

Auth is the only stateful-looking object in sessionkeep, and its state is
immutable configuration set at construction. Every operation is a short
sequence of adapter calls plus pure computation, so one Auth instance can be
shared across concurrent requests without locking.

Lifecycle rules:
  Sessions are renewed lazily. validate_session() extends a session only when
      it is touched while idle (past active expiry, before idle expiry); the
      renewed object comes back with fresh=True so the caller re-issues the
      cookie. Active sessions are returned untouched and dead sessions raise
      InvalidSessionIdError -- they are never revived.

  Keys authenticate with exactly one of: a password verified against the
      stored digest, or no password against a passwordless key. Any mismatch
      raises InvalidPasswordError, including a password sent to a
      passwordless key (no guessing against OAuth-style keys).

  delete_user() removes sessions, then keys, then the user. There is no
      cross-call transaction: if a later step fails, the caller retries.

Concurrency:
  Two concurrent renewals of the same idle session both write; last write
  wins. Both outcomes extend the session validly, so this race is accepted.

Blocking work:
  The default password hash is bcrypt, which is CPU-bound. Hash and verify
  calls run in a worker thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable

from auth.adapter import AdapterConfig, create_adapter, supports_session_and_user
from auth.cookie import Cookie, create_session_cookie
from auth.debug import DebugLogger
from auth.errors import InvalidKeyIdError, InvalidPasswordError, InvalidSessionIdError, InvalidUserIdError
from auth.models import Key, KeyDescriptor, KeyRecord, Session, SessionRecord, User, UserRecord
from auth.request import (
    AuthRequest,
    RequestContext,
    read_bearer_token,
    read_session_cookie,
    validate_request_origin,
)
from auth.session import get_session_state, is_valid_session_record, new_session_expiration, now_ms, to_datetime
from auth.tokens import PasswordHash, create_key_id, generate_session_id, generate_user_id, parse_key_id
from core.config import Settings, get_settings

logger = logging.getLogger("sessionkeep.auth")

AttributeTransform = Callable[[dict[str, Any]], dict[str, Any]]


def _no_attributes(record: dict[str, Any]) -> dict[str, Any]:
    return {}


class Auth:
    """Issue, validate, renew, and revoke sessions; manage users and keys.

    Usage:
        auth = Auth(adapter=MyAdapter(), settings=Settings(env="PROD"))
        user = await auth.create_user(
            key=KeyDescriptor("email", "user@example.com", "hunter22"),
            attributes={"username": "user"},
        )
        key = await auth.use_key("email", "user@example.com", "hunter22")
        session = await auth.create_session(key.user_id)
        cookie = auth.create_session_cookie(session)
    """

    def __init__(
        self,
        adapter: AdapterConfig | None = None,
        settings: Settings | None = None,
        *,
        password_hash: PasswordHash | None = None,
        get_user_attributes: AttributeTransform | None = None,
        get_session_attributes: AttributeTransform | None = None,
        debug: DebugLogger | None = None,
    ) -> None:
        if adapter is None:
            # Startup precondition, not a runtime error.
            logger.critical("Adapter is not defined in configuration (Auth(adapter=...))")
            raise SystemExit(1)
        self.adapter = create_adapter(adapter)
        self.settings = settings or get_settings()
        self.password_hash = password_hash or PasswordHash()
        self.get_user_attributes = get_user_attributes or _no_attributes
        self.get_session_attributes = get_session_attributes or _no_attributes
        self.debug = debug or DebugLogger(enabled=self.settings.debug)
        self._has_session_and_user = supports_session_and_user(self.adapter)

    # ------------------------------------------------------------------
    # Record -> domain transforms
    # ------------------------------------------------------------------

    def _transform_user(self, record: UserRecord) -> User:
        return User(user_id=record["id"], attributes=dict(self.get_user_attributes(record)))

    def _transform_key(self, record: KeyRecord) -> Key:
        provider_id, provider_user_id = parse_key_id(record["id"])
        return Key(
            user_id=record["user_id"],
            provider_id=provider_id,
            provider_user_id=provider_user_id,
            password_defined=record.get("hashed_password") is not None,
        )

    def _transform_session(self, record: SessionRecord, user: User, fresh: bool = False) -> Session:
        state = get_session_state(record) or "idle"
        return Session(
            session_id=record["id"],
            user=user,
            active_period_expires_at=to_datetime(record["active_expires"]),
            idle_period_expires_at=to_datetime(record["idle_expires"]),
            state=state,
            fresh=fresh,
            attributes=dict(self.get_session_attributes(record)),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _generate_hash(self, password: str) -> str:
        result = await asyncio.to_thread(self.password_hash.generate, password)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _validate_hash(self, password: str, hashed_password: str) -> bool:
        result = await asyncio.to_thread(self.password_hash.validate, password, hashed_password)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    def _validate_session_id_argument(self, session_id: str | None) -> None:
        if not session_id:
            self.debug.session.fail("Empty session id")
            raise InvalidSessionIdError("Empty session id.")

    def _check_session_record(self, record: SessionRecord | None, session_id: str) -> SessionRecord:
        if record is None:
            self.debug.session.fail("Session not found", session_id)
            raise InvalidSessionIdError("Session not found.")
        if not is_valid_session_record(record):
            self.debug.session.fail(f"Session expired at {to_datetime(record['idle_expires']).isoformat()}", session_id)
            raise InvalidSessionIdError("Session expired.")
        return record

    async def _get_user_record(self, user_id: str) -> UserRecord:
        record = await self.adapter.get_user(user_id)
        if record is None:
            raise InvalidUserIdError(f"User {user_id!r} not found.")
        return record

    async def _get_session_record(self, session_id: str) -> SessionRecord:
        record = await self.adapter.get_session(session_id)
        return self._check_session_record(record, session_id)

    async def _get_session_and_user_records(self, session_id: str) -> tuple[SessionRecord, UserRecord]:
        if self._has_session_and_user:
            session_record, user_record = await self.adapter.get_session_and_user(session_id)
            session_record = self._check_session_record(session_record, session_id)
            if user_record is None:
                raise InvalidUserIdError(f"User {session_record['user_id']!r} not found.")
            return session_record, user_record
        session_record = await self._get_session_record(session_id)
        user_record = await self._get_user_record(session_record["user_id"])
        return session_record, user_record

    def _new_session_expiration(self) -> tuple[int, int]:
        periods = self.settings.session_expires_in
        return new_session_expiration(periods.active_period, periods.idle_period)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user(self, user_id: str) -> User:
        record = await self._get_user_record(user_id)
        return self._transform_user(record)

    async def create_user(
        self,
        user_id: str | None = None,
        key: KeyDescriptor | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> User:
        """Create a user, optionally together with its first key.

        The user and key go to the adapter in a single set_user() call so the
        adapter can write both atomically. Duplicate ids are reported by the
        adapter.
        """
        user_record: UserRecord = {**(attributes or {}), "id": user_id or generate_user_id()}
        key_record: KeyRecord | None = None
        if key is not None:
            hashed_password = None if key.password is None else await self._generate_hash(key.password)
            key_record = {
                "id": create_key_id(key.provider_id, key.provider_user_id),
                "user_id": user_record["id"],
                "hashed_password": hashed_password,
            }
        await self.adapter.set_user(user_record, key_record)
        return self._transform_user(user_record)

    async def update_user_attributes(self, user_id: str, attributes: dict[str, Any]) -> User:
        await self.adapter.update_user(user_id, attributes)
        return await self.get_user(user_id)

    async def delete_user(self, user_id: str) -> None:
        # Order matters: dependents first, so a failure never leaves sessions
        # or keys pointing at a deleted user.
        await self.adapter.delete_sessions_by_user_id(user_id)
        await self.adapter.delete_keys_by_user_id(user_id)
        await self.adapter.delete_user(user_id)

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    async def create_key(
        self,
        user_id: str,
        provider_id: str,
        provider_user_id: str,
        password: str | None = None,
    ) -> Key:
        key_id = create_key_id(provider_id, provider_user_id)
        hashed_password = None if password is None else await self._generate_hash(password)
        await self.adapter.set_key({"id": key_id, "user_id": user_id, "hashed_password": hashed_password})
        return Key(
            user_id=user_id,
            provider_id=provider_id,
            provider_user_id=provider_user_id,
            password_defined=hashed_password is not None,
        )

    async def use_key(self, provider_id: str, provider_user_id: str, password: str | None) -> Key:
        """Authenticate with a key. The entry point for every login flow."""
        key_id = create_key_id(provider_id, provider_user_id)
        record = await self.adapter.get_key(key_id)
        if record is None:
            self.debug.key.fail("Key not found", key_id)
            raise InvalidKeyIdError(f"Key {key_id!r} not found.")

        hashed_password = record.get("hashed_password")
        if hashed_password is not None:
            self.debug.key.info("Key includes password")
            if not password:
                self.debug.key.fail("Key password not provided", key_id)
                raise InvalidPasswordError("Key password not provided.")
            if not await self._validate_hash(password, hashed_password):
                self.debug.key.fail("Incorrect key password", key_id)
                raise InvalidPasswordError("Incorrect key password.")
            self.debug.key.notice("Validated key password")
        else:
            if password is not None:
                self.debug.key.fail("Password provided for passwordless key", key_id)
                raise InvalidPasswordError("Key does not accept a password.")
            self.debug.key.info("No password included in key")

        self.debug.key.success("Validated key", key_id)
        return self._transform_key(record)

    async def get_key(self, provider_id: str, provider_user_id: str) -> Key:
        key_id = create_key_id(provider_id, provider_user_id)
        record = await self.adapter.get_key(key_id)
        if record is None:
            raise InvalidKeyIdError(f"Key {key_id!r} not found.")
        return self._transform_key(record)

    async def get_all_user_keys(self, user_id: str) -> list[Key]:
        """Return every key of a user. Raises InvalidUserIdError for unknown users."""
        records, _ = await asyncio.gather(
            self.adapter.get_keys_by_user_id(user_id),
            self.get_user(user_id),
        )
        return [self._transform_key(record) for record in records]

    async def update_key_password(self, provider_id: str, provider_user_id: str, password: str | None) -> Key:
        """Replace the key's password; None turns it into a passwordless key."""
        key_id = create_key_id(provider_id, provider_user_id)
        hashed_password = None if password is None else await self._generate_hash(password)
        await self.adapter.update_key(key_id, {"hashed_password": hashed_password})
        return await self.get_key(provider_id, provider_user_id)

    async def delete_key(self, provider_id: str, provider_user_id: str) -> None:
        await self.adapter.delete_key(create_key_id(provider_id, provider_user_id))

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, session_id: str) -> Session:
        """Return a live session without renewing it."""
        self._validate_session_id_argument(session_id)
        session_record, user_record = await self._get_session_and_user_records(session_id)
        return self._transform_session(session_record, self._transform_user(user_record))

    async def get_all_user_sessions(self, user_id: str) -> list[Session]:
        """Return the user's live sessions. Dead sessions are skipped, not deleted."""
        user, records = await asyncio.gather(
            self.get_user(user_id),
            self.adapter.get_sessions_by_user_id(user_id),
        )
        now = now_ms()
        return [self._transform_session(record, user) for record in records if is_valid_session_record(record, now)]

    async def validate_session(self, session_id: str) -> Session:
        """Return the session, renewing it first if it is idle."""
        self._validate_session_id_argument(session_id)
        session_record, user_record = await self._get_session_and_user_records(session_id)
        session = self._transform_session(session_record, self._transform_user(user_record))
        if session.state == "active":
            self.debug.session.success("Validated session", session.session_id)
            return session

        active_expires, idle_expires = self._new_session_expiration()
        await self.adapter.update_session(
            session.session_id,
            {"active_expires": active_expires, "idle_expires": idle_expires},
        )
        self.debug.session.notice("Session renewed", session.session_id)
        renewed_record: SessionRecord = {
            **session_record,
            "active_expires": active_expires,
            "idle_expires": idle_expires,
        }
        return self._transform_session(renewed_record, session.user, fresh=True)

    async def create_session(
        self,
        user_id: str,
        session_id: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Session:
        active_expires, idle_expires = self._new_session_expiration()
        record: SessionRecord = {
            **(attributes or {}),
            "id": session_id or generate_session_id(),
            "user_id": user_id,
            "active_expires": active_expires,
            "idle_expires": idle_expires,
        }
        user, _ = await asyncio.gather(
            self.get_user(user_id),
            self.adapter.set_session(record),
        )
        self.debug.session.success("Created session", record["id"])
        return self._transform_session(record, user)

    async def update_session_attributes(self, session_id: str, attributes: dict[str, Any]) -> Session:
        self._validate_session_id_argument(session_id)
        await self.adapter.update_session(session_id, attributes)
        return await self.get_session(session_id)

    async def invalidate_session(self, session_id: str) -> None:
        self._validate_session_id_argument(session_id)
        await self.adapter.delete_session(session_id)
        self.debug.session.notice("Invalidated session", session_id)

    async def invalidate_all_user_sessions(self, user_id: str) -> None:
        await self.adapter.delete_sessions_by_user_id(user_id)

    async def delete_dead_user_sessions(self, user_id: str) -> None:
        """Delete every session of the user that is past its idle expiry."""
        records = await self.adapter.get_sessions_by_user_id(user_id)
        now = now_ms()
        dead_session_ids = [record["id"] for record in records if not is_valid_session_record(record, now)]
        await asyncio.gather(*(self.adapter.delete_session(session_id) for session_id in dead_session_ids))
        if dead_session_ids:
            self.debug.session.notice(f"Deleted {len(dead_session_ids)} dead sessions", user_id)

    # ------------------------------------------------------------------
    # Cookies and requests
    # ------------------------------------------------------------------

    def create_session_cookie(self, session: Session | None) -> Cookie:
        return create_session_cookie(session, self.settings.env, self.settings.session_cookie)

    def read_session_cookie(self, cookie_header: str | None) -> str | None:
        return read_session_cookie(cookie_header, self.settings.session_cookie.name, self.debug)

    def read_bearer_token(self, authorization_header: str | None) -> str | None:
        return read_bearer_token(authorization_header, self.debug)

    def validate_request_origin(
        self,
        method: str | None,
        url: str | None,
        origin: str | None,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        """Run the CSRF origin check with this instance's configuration.

        Always checks, even when csrf_protection is disabled in settings;
        AuthRequest is what honours the on/off switch.
        """
        validate_request_origin(
            method,
            url,
            origin,
            self.settings.csrf_config,
            headers=headers,
            debug=self.debug,
        )

    def handle_request(self, context: RequestContext) -> AuthRequest:
        return AuthRequest(self, context)
