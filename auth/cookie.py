"""
auth/cookie.py -- Session cookie derivation, serialization, and parsing.

create_session_cookie() turns a session (or its absence) into a Cookie value
object. Nothing here touches a response object: the caller, or
auth.request.AuthRequest, decides where the cookie goes.

Expiry semantics:
  session is None          -> empty value, expires at the Unix epoch and
                              Max-Age=0 (tells the browser to drop the cookie)
  cookie_config.expires    -> cookie expires with the session's idle period
  not cookie_config.expires -> cookie lives for a year; session validity is
                              enforced server-side only

Security:
  HttpOnly is always set -- scripts never need the session id.
  Secure is set in PROD only, so plain-http local development still works.
  SameSite defaults to "lax": sent on top-level navigations, withheld on
  cross-site POSTs.

Serialization follows Starlette's Response.set_cookie (http.cookies.SimpleCookie
morsels); parsing uses Starlette's cookie_parser, the same parser behind
Request.cookies.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from http.cookies import SimpleCookie
from typing import Literal

from starlette.requests import cookie_parser

from auth.models import Session
from core.config import DEFAULT_SESSION_COOKIE_NAME, SessionCookieConfig

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_LONG_LIVED_COOKIE = timedelta(days=365)


@dataclass
class CookieAttributes:
    http_only: bool = True
    secure: bool = False
    same_site: Literal["lax", "strict", "none"] = "lax"
    path: str = "/"
    domain: str | None = None
    expires: datetime | None = None
    max_age: int | None = None


@dataclass
class Cookie:
    name: str
    value: str
    attributes: CookieAttributes

    def serialize(self) -> str:
        """Render the value of a Set-Cookie header for this cookie."""
        cookie: SimpleCookie = SimpleCookie()
        cookie[self.name] = self.value
        morsel = cookie[self.name]
        attrs = self.attributes
        if attrs.path is not None:
            morsel["path"] = attrs.path
        if attrs.domain is not None:
            morsel["domain"] = attrs.domain
        if attrs.expires is not None:
            morsel["expires"] = format_datetime(attrs.expires.astimezone(timezone.utc), usegmt=True)
        if attrs.max_age is not None:
            morsel["max-age"] = attrs.max_age
        if attrs.http_only:
            morsel["httponly"] = True
        if attrs.secure:
            morsel["secure"] = True
        if attrs.same_site:
            morsel["samesite"] = attrs.same_site.capitalize()
        return cookie.output(header="").strip()


def create_session_cookie(
    session: Session | None,
    env: str,
    cookie_config: SessionCookieConfig | None = None,
) -> Cookie:
    """Derive the session cookie for `session`, or a deletion cookie for None."""
    config = cookie_config or SessionCookieConfig()
    max_age: int | None = None
    if session is None:
        expires = _UNIX_EPOCH
        max_age = 0
    elif config.expires:
        expires = session.idle_period_expires_at
    else:
        expires = datetime.now(timezone.utc) + _LONG_LIVED_COOKIE

    return Cookie(
        name=config.name or DEFAULT_SESSION_COOKIE_NAME,
        value=session.session_id if session is not None else "",
        attributes=CookieAttributes(
            http_only=True,
            secure=env == "PROD",
            same_site=config.attributes.same_site,
            path=config.attributes.path,
            domain=config.attributes.domain,
            expires=expires,
            max_age=max_age,
        ),
    )


def parse_cookie_header(cookie_header: str | None) -> dict[str, str]:
    """Parse a Cookie request header into a name -> value mapping."""
    if not cookie_header:
        return {}
    return cookie_parser(cookie_header)
