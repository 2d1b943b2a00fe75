"""
auth/debug.py -- Leveled debug trace for the lifecycle engine.

The engine receives a DebugLogger at construction instead of reaching for a
module-wide switch. Each concern gets its own channel so a trace reads as
"[session] fail: Session not found (abc...)":

    debug = DebugLogger(enabled=True)
    debug.session.fail("Session not found", session_id)
    debug.key.success("Validated key", key_id)
    debug.request.notice("Skipping CSRF check")

Level mapping onto stdlib logging:
  info    -> DEBUG    (step-by-step detail)
  notice  -> INFO     (noteworthy but expected)
  success -> INFO
  fail    -> WARNING  (a lookup or check rejected the caller)

A disabled DebugLogger emits nothing regardless of logger configuration.
Never pass passwords or password digests as the subject.
"""

from __future__ import annotations

import logging

_DEFAULT_LOGGER_NAME = "sessionkeep.debug"


class DebugChannel:
    def __init__(self, name: str, logger: logging.Logger, enabled: bool) -> None:
        self.name = name
        self._logger = logger
        self._enabled = enabled

    def _emit(self, level: int, kind: str, message: str, subject: object | None) -> None:
        if not self._enabled:
            return
        if subject is None:
            self._logger.log(level, "[%s] %s: %s", self.name, kind, message)
        else:
            self._logger.log(level, "[%s] %s: %s (%s)", self.name, kind, message, subject)

    def info(self, message: str, subject: object | None = None) -> None:
        self._emit(logging.DEBUG, "info", message, subject)

    def notice(self, message: str, subject: object | None = None) -> None:
        self._emit(logging.INFO, "notice", message, subject)

    def success(self, message: str, subject: object | None = None) -> None:
        self._emit(logging.INFO, "success", message, subject)

    def fail(self, message: str, subject: object | None = None) -> None:
        self._emit(logging.WARNING, "fail", message, subject)


class DebugLogger:
    """Bundle of session/key/request channels sharing one stdlib logger."""

    def __init__(self, enabled: bool = False, logger: logging.Logger | None = None) -> None:
        self.enabled = enabled
        self.logger = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)
        self.session = DebugChannel("session", self.logger, enabled)
        self.key = DebugChannel("key", self.logger, enabled)
        self.request = DebugChannel("request", self.logger, enabled)
