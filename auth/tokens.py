"""
auth/tokens.py -- Identifier generation, key ids, and the password hash capability.

Security design decisions:
  Identifiers: generate_random_string() draws each character with
       secrets.choice() from a lowercase alphanumeric alphabet. Session ids
       default to 40 characters (~206 bits), user ids to 15 (~77 bits) --
       opaque, unstructured, and collision-free in practice.

  Passwords: bcrypt directly (no passlib wrapper). Bcrypt's cost factor makes
       brute-force expensive for low-entropy secrets. The hash primitive is not
       reimplemented here: PasswordHash is an injectable pair of functions and
       the bcrypt pair is only the default.

  Key ids: "<provider_id>:<provider_user_id>". parse_key_id() splits on the
       FIRST colon only, so provider user ids such as URNs or emails containing
       ":" survive a round trip.

Layer rule: no imports from core/. Stdlib + bcrypt only.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Awaitable, Callable

import bcrypt

DEFAULT_ALPHABET = "abcdefghijklmnopqrstuvwxyz1234567890"

SESSION_ID_LENGTH = 40
USER_ID_LENGTH = 15


# ---------------------------------------------------------------------------
# Random identifiers
# ---------------------------------------------------------------------------


def generate_random_string(length: int, alphabet: str = DEFAULT_ALPHABET) -> str:
    """Return a cryptographically strong random string of the given length."""
    if length <= 0:
        raise ValueError("length must be positive.")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_session_id() -> str:
    return generate_random_string(SESSION_ID_LENGTH)


def generate_user_id() -> str:
    return generate_random_string(USER_ID_LENGTH)


# ---------------------------------------------------------------------------
# Key ids
# ---------------------------------------------------------------------------


def create_key_id(provider_id: str, provider_user_id: str) -> str:
    if ":" in provider_id:
        raise ValueError("provider_id must not contain ':'.")
    return f"{provider_id}:{provider_user_id}"


def parse_key_id(key_id: str) -> tuple[str, str]:
    """Split a stored key id back into (provider_id, provider_user_id)."""
    provider_id, _, provider_user_id = key_id.partition(":")
    return provider_id, provider_user_id


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are rejected by current bcrypt releases;
    cap password length where passwords enter the application.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed digest is treated as a mismatch rather than an error so a
    corrupted record cannot be told apart from a wrong password.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


HashFunc = Callable[[str], str | Awaitable[str]]
VerifyFunc = Callable[[str, str], bool | Awaitable[bool]]


@dataclass(frozen=True)
class PasswordHash:
    """Injectable hash/verify pair.

    Either function may be a plain callable (run off the event loop by the
    engine) or a coroutine function.
    """

    generate: HashFunc = hash_password
    validate: VerifyFunc = verify_password
