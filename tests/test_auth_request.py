"""Integration tests for auth.request.AuthRequest via Auth.handle_request().

A RequestContext is built by hand with a list-appending set_cookie callback,
standing in for whatever response object a web framework would provide.
"""

from __future__ import annotations

import asyncio

import pytest

from auth.engine import Auth
from auth.request import RequestContext
from auth.session import now_ms
from core.config import Settings

pytestmark = pytest.mark.asyncio

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _context(cookies: list, method: str = "GET", headers: dict | None = None) -> RequestContext:
    return RequestContext(
        method=method,
        url="https://example.com/account",
        headers=headers or {},
        set_cookie=cookies.append,
    )


async def _user_session(auth: Auth):
    await auth.create_user(user_id="u1")
    return await auth.create_session("u1")


# ---------------------------------------------------------------------------
# Cookie-based validation
# ---------------------------------------------------------------------------


async def test_validate_active_session_sets_no_cookie(auth):
    session = await _user_session(auth)
    cookies: list = []
    request = auth.handle_request(_context(cookies, headers={"Cookie": f"auth_session={session.session_id}"}))

    validated = await request.validate()

    assert validated.session_id == session.session_id
    assert cookies == []


async def test_validate_without_cookie(auth):
    cookies: list = []

    assert await auth.handle_request(_context(cookies)).validate() is None
    assert cookies == []


async def test_validate_idle_session_reissues_cookie(auth, adapter):
    session = await _user_session(auth)
    adapter.sessions[session.session_id]["active_expires"] = now_ms() - 1000
    cookies: list = []
    request = auth.handle_request(_context(cookies, headers={"cookie": f"auth_session={session.session_id}"}))

    validated = await request.validate()

    assert validated.fresh is True
    assert len(cookies) == 1
    assert cookies[0].value == session.session_id


async def test_validate_invalid_session_clears_cookie(auth):
    cookies: list = []
    request = auth.handle_request(_context(cookies, headers={"Cookie": "auth_session=stale"}))

    assert await request.validate() is None
    assert len(cookies) == 1
    assert cookies[0].value == ""


async def test_validate_post_with_foreign_origin_is_anonymous(auth, adapter):
    session = await _user_session(auth)
    cookies: list = []
    headers = {"Cookie": f"auth_session={session.session_id}", "Origin": "https://evil.com"}
    request = auth.handle_request(_context(cookies, method="POST", headers=headers))

    assert await request.validate() is None
    assert cookies == []


async def test_validate_post_same_origin(auth):
    session = await _user_session(auth)
    headers = {"Cookie": f"auth_session={session.session_id}", "Origin": "https://example.com"}
    request = auth.handle_request(_context([], method="POST", headers=headers))

    assert (await request.validate()).session_id == session.session_id


async def test_csrf_disabled_accepts_foreign_origin(adapter, fake_password_hash):
    settings = Settings(_env_file=None, csrf_protection=False)
    auth = Auth(adapter=adapter, settings=settings, password_hash=fake_password_hash)
    session = await _user_session(auth)
    headers = {"Cookie": f"auth_session={session.session_id}", "Origin": "https://evil.com"}
    request = auth.handle_request(_context([], method="POST", headers=headers))

    assert (await request.validate()).session_id == session.session_id


async def test_validate_is_memoized(auth, adapter):
    session = await _user_session(auth)
    request = auth.handle_request(_context([], headers={"Cookie": f"auth_session={session.session_id}"}))
    adapter.calls.clear()

    first, second = await asyncio.gather(request.validate(), request.validate())
    third = await request.validate()

    assert first is second is third
    assert adapter.calls.count("get_session") == 1


async def test_set_session_writes_cookie_and_resets_memo(auth, adapter):
    session = await _user_session(auth)
    cookies: list = []
    request = auth.handle_request(_context(cookies))
    assert await request.validate() is None

    request.set_session(session)

    assert cookies[-1].value == session.session_id
    request.set_session(None)
    assert cookies[-1].value == ""


async def test_adapter_errors_propagate(auth, adapter):
    session = await _user_session(auth)

    async def broken(session_id):
        raise RuntimeError("store down")

    adapter.get_session = broken
    request = auth.handle_request(_context([], headers={"Cookie": f"auth_session={session.session_id}"}))

    with pytest.raises(RuntimeError):
        await request.validate()


# ---------------------------------------------------------------------------
# Bearer validation
# ---------------------------------------------------------------------------


async def test_validate_bearer_token(auth):
    session = await _user_session(auth)
    cookies: list = []
    request = auth.handle_request(
        _context(cookies, method="POST", headers={"Authorization": f"Bearer {session.session_id}"})
    )

    validated = await request.validate_bearer_token()

    assert validated.session_id == session.session_id
    assert cookies == []


async def test_validate_bearer_token_invalid(auth):
    request = auth.handle_request(_context([], headers={"Authorization": "Bearer nope"}))

    assert await request.validate_bearer_token() is None


async def test_validate_bearer_token_wrong_scheme(auth):
    request = auth.handle_request(_context([], headers={"Authorization": "Basic dXNlcjpwYXNz"}))

    assert await request.validate_bearer_token() is None
