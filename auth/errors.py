"""
auth/errors.py -- Typed error kinds raised by the lifecycle engine.

Every error carries a stable `code` string callers can switch on, plus a
suggested HTTP `status_code`. The engine never produces responses itself;
route handlers map these to 400/401/403 as they see fit.

Adapter-originated exceptions are NOT wrapped in these classes. Only the
"record not found" case is turned into an Invalid*Id error by the engine.
Adapters may raise DuplicateKeyIdError themselves on a uniqueness violation.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all sessionkeep errors."""

    code: str = "AUTH_ERROR"
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class InvalidUserIdError(AuthError):
    code = "AUTH_INVALID_USER_ID"


class InvalidSessionIdError(AuthError):
    """Session missing, dead (idle-expired), or an empty session id argument."""

    code = "AUTH_INVALID_SESSION_ID"
    status_code = 401


class InvalidKeyIdError(AuthError):
    code = "AUTH_INVALID_KEY_ID"


class InvalidPasswordError(AuthError):
    code = "AUTH_INVALID_PASSWORD"


class InvalidRequestError(AuthError):
    """Request failed method/origin validation, or the adapter rejected a write."""

    code = "AUTH_INVALID_REQUEST"
    status_code = 403


class DuplicateKeyIdError(InvalidRequestError):
    code = "AUTH_DUPLICATE_KEY_ID"
    status_code = 400
