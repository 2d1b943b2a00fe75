"""
auth/request.py -- Session id extraction and CSRF origin validation.

Inbound request data is read-only here: method, URL, and the Origin, Cookie,
and Authorization headers. Nothing in this module performs I/O except
AuthRequest, which delegates session lookups to the engine.

Two ways to carry a session id:
  1. Session cookie (browser clients). Guarded by the origin check below.
  2. Authorization: Bearer <session id> (API clients). No origin check --
     browsers never attach an Authorization header on their own.

CSRF origin check:
  GET/HEAD are exempt. Every other method must send an Origin header whose
  scheme and host match the target URL (or the configured host), or match
  one of the allowed sub-domains of that host. Default ports (80, 443) are
  dropped before comparing. A malformed URL or Origin fails closed.

Framework neutrality:
  RequestContext is a plain snapshot of the request plus a set_cookie
  callback. Each web framework adapts its own request/response objects into
  one; sessionkeep ships no framework binding.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable
from urllib.parse import SplitResult, urlsplit

from auth.cookie import Cookie, parse_cookie_header
from auth.debug import DebugLogger
from auth.errors import AuthError, InvalidRequestError
from core.config import DEFAULT_SESSION_COOKIE_NAME, CSRFProtectionConfig

if TYPE_CHECKING:
    from auth.engine import Auth
    from auth.models import Session

_SAFE_METHODS = frozenset({"GET", "HEAD"})
_DEFAULT_PORTS = {"http": 80, "https": 443}

_NULL_DEBUG = DebugLogger(enabled=False)


# ---------------------------------------------------------------------------
# Header extraction
# ---------------------------------------------------------------------------


def read_session_cookie(
    cookie_header: str | None,
    cookie_name: str = DEFAULT_SESSION_COOKIE_NAME,
    debug: DebugLogger = _NULL_DEBUG,
) -> str | None:
    """Return the session id from a Cookie header, or None if absent."""
    if not cookie_header:
        debug.request.info("No session cookie found")
        return None
    session_id = parse_cookie_header(cookie_header).get(cookie_name) or None
    if session_id:
        debug.request.info("Found session cookie", session_id)
    else:
        debug.request.info("No session cookie found")
    return session_id


def read_bearer_token(
    authorization_header: str | None,
    debug: DebugLogger = _NULL_DEBUG,
) -> str | None:
    """Return the token of a "Bearer <token>" Authorization header, else None.

    The scheme comparison is exact ("bearer" is rejected) and the header is
    split on the first space only.
    """
    if not authorization_header:
        debug.request.info("No token found in authorization header")
        return None
    auth_scheme, _, token = authorization_header.partition(" ")
    if auth_scheme != "Bearer":
        debug.request.fail("Invalid authorization header auth scheme", auth_scheme)
        return None
    return token or None


# ---------------------------------------------------------------------------
# Origin validation
# ---------------------------------------------------------------------------


def safe_parse_url(url: str | None) -> SplitResult | None:
    """Parse an absolute URL. Returns None when it has no scheme or host."""
    if not url:
        return None
    try:
        parsed = urlsplit(url)
        # Accessing .port validates it; a bad port raises ValueError.
        parsed.port
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc or not parsed.hostname:
        return None
    return parsed


def _host_of(parsed: SplitResult) -> str:
    host = parsed.hostname or ""
    port = parsed.port
    if port is None or port == _DEFAULT_PORTS.get(parsed.scheme):
        return host
    return f"{host}:{port}"


def is_allowed_origin(
    request_origin: str,
    target: SplitResult,
    allowed_sub_domains: list[str] | str = (),
    host: str | None = None,
) -> bool:
    """Return True if request_origin may make unsafe requests to target.

    host (e.g. "example.com" or "example.com:8443") replaces the target URL's
    host in the comparison; the scheme always comes from the target URL.
    Ports equal to the scheme default (80, 443) compare as absent.
    """
    origin = safe_parse_url(request_origin)
    if origin is None:
        return False
    if origin.scheme != target.scheme:
        return False
    app_host = _host_of(target)
    if host:
        configured = safe_parse_url(f"{target.scheme}://{host}")
        app_host = _host_of(configured) if configured is not None else host.lower()
    origin_host = _host_of(origin).lower()
    if origin_host == app_host:
        return True
    if allowed_sub_domains == "*":
        return origin_host.endswith(f".{app_host}")
    return any(origin_host == f"{sub.lower()}.{app_host}" for sub in allowed_sub_domains)


def _get_header(headers: Mapping[str, str] | None, name: str) -> str | None:
    if not headers:
        return None
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def validate_request_origin(
    method: str | None,
    url: str | None,
    origin: str | None,
    csrf_protection: bool | CSRFProtectionConfig = True,
    headers: Mapping[str, str] | None = None,
    debug: DebugLogger = _NULL_DEBUG,
) -> None:
    """Raise InvalidRequestError unless the request passes the CSRF origin check.

    csrf_protection=False skips the check entirely. headers is only consulted
    when CSRFProtectionConfig.host_header is set.
    """
    if csrf_protection is False:
        debug.request.notice("CSRF protection disabled")
        return
    if method is None:
        debug.request.fail("Request method unavailable")
        raise InvalidRequestError("Request method unavailable.")
    if url is None:
        debug.request.fail("Request url unavailable")
        raise InvalidRequestError("Request url unavailable.")
    if method.upper() in _SAFE_METHODS:
        debug.request.notice("Skipping CSRF check")
        return
    if not origin:
        debug.request.fail("No request origin available")
        raise InvalidRequestError("No request origin available.")

    target = safe_parse_url(url)
    if target is None:
        debug.request.fail("Invalid request url", url)
        raise InvalidRequestError("Invalid request url.")

    config = csrf_protection if isinstance(csrf_protection, CSRFProtectionConfig) else CSRFProtectionConfig()
    host = config.host
    if host is None and config.host_header:
        host = _get_header(headers, config.host_header)
    if not is_allowed_origin(origin, target, config.allowed_sub_domains, host):
        debug.request.fail("Invalid request origin", origin)
        raise InvalidRequestError("Invalid request origin.")
    debug.request.info("Valid request origin", origin)


# ---------------------------------------------------------------------------
# Per-request helper
# ---------------------------------------------------------------------------


@dataclass
class RequestContext:
    """What AuthRequest needs from a framework request/response pair."""

    method: str | None
    url: str | None
    headers: Mapping[str, str] = field(default_factory=dict)
    set_cookie: Callable[[Cookie], None] | None = None

    def header(self, name: str) -> str | None:
        return _get_header(self.headers, name)


class AuthRequest:
    """Session handling bound to a single request.

    validate() and validate_bearer_token() resolve to a Session or None and
    are memoized: calling them repeatedly (or concurrently) within a request
    costs one adapter lookup. Only auth errors become None -- adapter
    failures propagate.
    """

    def __init__(self, auth: Auth, context: RequestContext) -> None:
        self.auth = auth
        self.context = context
        self._validate_task: asyncio.Future | None = None
        self._validate_bearer_task: asyncio.Future | None = None

    def _debug(self) -> DebugLogger:
        return self.auth.debug

    def set_session(self, session: Session | None) -> None:
        """Write (or clear, for None) the session cookie and reset the memo."""
        self._validate_task = None
        self._validate_bearer_task = None
        self._write_cookie(session)

    def _write_cookie(self, session: Session | None) -> None:
        if self.context.set_cookie is None:
            self._debug().request.notice("No set_cookie callback; session cookie not written")
            return
        self.context.set_cookie(self.auth.create_session_cookie(session))

    def _get_session_id(self) -> str | None:
        session_id = self.auth.read_session_cookie(self.context.header("Cookie"))
        if session_id is None:
            return None
        if self.auth.settings.csrf_enabled:
            try:
                self.auth.validate_request_origin(
                    self.context.method,
                    self.context.url,
                    self.context.header("Origin"),
                    headers=self.context.headers,
                )
            except InvalidRequestError:
                return None
        return session_id

    async def _validate(self) -> Session | None:
        session_id = self._get_session_id()
        if session_id is None:
            return None
        try:
            session = await self.auth.validate_session(session_id)
        except AuthError:
            self._write_cookie(None)
            return None
        if session.fresh:
            self._write_cookie(session)
        return session

    async def _validate_bearer(self) -> Session | None:
        token = self.auth.read_bearer_token(self.context.header("Authorization"))
        if token is None:
            return None
        try:
            return await self.auth.validate_session(token)
        except AuthError:
            return None

    async def validate(self) -> Session | None:
        """Validate the session cookie, renewing and re-issuing it if needed."""
        if self._validate_task is None:
            self._validate_task = asyncio.ensure_future(self._validate())
        return await self._validate_task

    async def validate_bearer_token(self) -> Session | None:
        """Validate a Bearer session id. Never reads or writes cookies."""
        if self._validate_bearer_task is None:
            self._validate_bearer_task = asyncio.ensure_future(self._validate_bearer())
        return await self._validate_bearer_task
