"""
tests/conftest.py -- Shared fixtures for sessionkeep tests.

This module provides:
  - fake_password_hash: instant hash/verify pair so engine tests skip bcrypt
  - settings: defaults only, no .env file
  - adapter: a fresh tests.fakes.MemoryAdapter per test
  - auth: an Auth engine wired to the three fixtures above

AUTH_* env vars are cleared before Settings is built so a developer's shell or
.env file cannot leak into test expectations.
"""

from __future__ import annotations

import os

import pytest

from auth.engine import Auth
from auth.tokens import PasswordHash
from core.config import Settings
from tests.fakes import MemoryAdapter

for _name in [name for name in os.environ if name.startswith("AUTH_")]:
    del os.environ[_name]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _fake_generate(password: str) -> str:
    return f"hashed:{password}"


def _fake_validate(password: str, hashed: str) -> bool:
    return hashed == f"hashed:{password}"


@pytest.fixture
def fake_password_hash() -> PasswordHash:
    return PasswordHash(generate=_fake_generate, validate=_fake_validate)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def adapter() -> MemoryAdapter:
    return MemoryAdapter()


@pytest.fixture
def auth(adapter: MemoryAdapter, settings: Settings, fake_password_hash: PasswordHash) -> Auth:
    return Auth(adapter=adapter, settings=settings, password_hash=fake_password_hash)
