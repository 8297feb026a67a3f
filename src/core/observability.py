"""Structured error reporting for the bridge core.

Errors in the relay are never fatal: they are reported by kind and the
triggering event is dropped. Tests swap the observer for a recorder and
assert on kinds instead of log strings.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

LOGGER = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    REMOTE_FAILURE = "remote_failure"
    UNRESOLVED_CORRELATION = "unresolved_correlation"
    PERSISTENCE_FAILURE = "persistence_failure"
    MALFORMED_EVENT = "malformed_event"


_LEVELS = {
    ErrorKind.REMOTE_FAILURE: logging.ERROR,
    ErrorKind.PERSISTENCE_FAILURE: logging.ERROR,
    ErrorKind.UNRESOLVED_CORRELATION: logging.WARNING,
    ErrorKind.MALFORMED_EVENT: logging.WARNING,
}


class LoggingObserver:
    """Default observer: one log line per incident."""

    def __init__(self, logger: logging.Logger = LOGGER) -> None:
        self._logger = logger

    def report(self, kind: ErrorKind, message: str, **fields: Any) -> None:
        details = " ".join(f"{key}={value}" for key, value in sorted(fields.items()))
        self._logger.log(
            _LEVELS.get(kind, logging.WARNING),
            "[%s] %s %s",
            kind.value,
            message,
            details,
            extra={"error_kind": kind.value},
        )
