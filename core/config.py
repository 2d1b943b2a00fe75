"""
core/config.py -- Centralized configuration via pydantic-settings.

All environment variable reads for sessionkeep happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead,
or build a Settings(...) explicitly and hand it to auth.engine.Auth.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from AUTH_-prefixed
      environment variables and an optional .env file. Nested models use "__"
      as delimiter, e.g. AUTH_SESSION_EXPIRES_IN__ACTIVE_PERIOD=3600000.

  Nested BaseModels: session expiry windows, the session cookie and CSRF
      protection are grouped the same way callers pass them around.

Only plain data lives here. Injected callables (password hash, attribute
transforms, debug logger) are constructor arguments of auth.engine.Auth.

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessionkeep.config")

DEFAULT_SESSION_COOKIE_NAME = "auth_session"

# Milliseconds, matching the epoch-ms timestamps stored on session records.
DEFAULT_ACTIVE_PERIOD = 1000 * 60 * 60 * 24  # 24 hours
DEFAULT_IDLE_PERIOD = 1000 * 60 * 60 * 24 * 14  # 14 days


class SessionExpiresIn(BaseModel):
    """Active and idle windows for new and renewed sessions, in milliseconds.

    The idle window starts where the active window ends, so a session's idle
    expiry can never precede its active expiry.
    """

    active_period: int = DEFAULT_ACTIVE_PERIOD
    idle_period: int = DEFAULT_IDLE_PERIOD

    @model_validator(mode="after")
    def validate_periods(self) -> "SessionExpiresIn":
        if self.active_period <= 0:
            raise ValueError("session_expires_in.active_period must be positive.")
        if self.idle_period < 0:
            raise ValueError("session_expires_in.idle_period must not be negative.")
        return self


class SessionCookieAttributes(BaseModel):
    same_site: Literal["lax", "strict", "none"] = "lax"
    path: str = "/"
    domain: str | None = None


class SessionCookieConfig(BaseModel):
    """Session cookie naming and attributes.

    expires=True pins the cookie expiry to the session's idle expiry.
    expires=False issues a long-lived cookie and leaves validity entirely
    to the server-side session record.
    """

    name: str = DEFAULT_SESSION_COOKIE_NAME
    attributes: SessionCookieAttributes = Field(default_factory=SessionCookieAttributes)
    expires: bool = True


class CSRFProtectionConfig(BaseModel):
    """Origin check settings for state-changing requests.

    host:               Compare origins against this host instead of the one
                        in the request URL.
    host_header:        Read the host from this request header instead
                        (e.g. "X-Forwarded-Host" behind a reverse proxy).
    allowed_sub_domains: Sub-domain labels of the host that may also send
                        unsafe requests, or "*" to allow every sub-domain.
    """

    host: str | None = None
    host_header: str | None = None
    allowed_sub_domains: list[str] | Literal["*"] = Field(default_factory=list)


class Settings(BaseSettings):
    """Settings loaded from AUTH_* environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    env: Literal["DEV", "PROD"] = "DEV"
    # Turns on the leveled debug trace in auth/debug.py.
    debug: bool = False

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    session_expires_in: SessionExpiresIn = Field(default_factory=SessionExpiresIn)
    session_cookie: SessionCookieConfig = Field(default_factory=SessionCookieConfig)

    # ------------------------------------------------------------------
    # CSRF
    # ------------------------------------------------------------------

    csrf_protection: bool | CSRFProtectionConfig = True

    @property
    def csrf_enabled(self) -> bool:
        return self.csrf_protection is not False

    @property
    def csrf_config(self) -> CSRFProtectionConfig:
        """CSRF options with defaults filled in when configured as a plain bool."""
        if isinstance(self.csrf_protection, CSRFProtectionConfig):
            return self.csrf_protection
        return CSRFProtectionConfig()

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def warn_insecure_same_site(self) -> "Settings":
        """Browsers drop SameSite=None cookies that are not also Secure.

        Cookies are only marked Secure in PROD, so this combination silently
        loses the session cookie in DEV. Warn instead of failing: it is still
        a legal configuration behind a TLS-terminating dev proxy.
        """
        if self.session_cookie.attributes.same_site == "none" and self.env != "PROD":
            logger.warning("session_cookie.attributes.same_site='none' without env=PROD: cookie will not be Secure.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
