"""
Failure description — structured error information for the failure track.

An ErrorCode enum plus a frozen dataclass carrying message, optional
exception and timestamp. Enum members are singletons, so callers compare
codes with `is`.
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """
    Structured error codes for the failure track.

    Input problems:  VALIDATION_ERROR, PARSE_ERROR
    Record state:    NOT_FOUND, ALREADY_EXISTS
    Infrastructure:  DATABASE_ERROR, EXTERNAL_SERVICE_ERROR,
                     CONFIGURATION_ERROR, TECHNICAL_ERROR, UNKNOWN_ERROR
    """

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input is missing fields or has the wrong shape."""

    PARSE_ERROR = "PARSE_ERROR"
    """Bytes could not be decoded into the expected structure."""

    NOT_FOUND = "NOT_FOUND"
    """The requested record does not exist."""

    ALREADY_EXISTS = "ALREADY_EXISTS"
    """The record is already present; not an error for idempotent writers."""

    DATABASE_ERROR = "DATABASE_ERROR"
    """Database connectivity or query failures."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Remote service call failures."""

    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """System misconfiguration."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Internal invariant broken or unexpected state."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.NOT_FOUND, "serial 01 not found")
    >>> desc.code
    <ErrorCode.NOT_FOUND: 'NOT_FOUND'>
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    @staticmethod
    def create(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> FailureDescription:
        return FailureDescription(code=code, message=message, exception=exception)

    def with_message(self, message: str) -> FailureDescription:
        """Return a copy with a new message, keeping code and exception."""
        return FailureDescription(code=self.code, message=message, exception=self.exception)

    def detail(self) -> str:
        """Message followed by the underlying exception text, if any."""
        if self.exception is None:
            return self.message
        return f"{self.message}: {self.exception}"

    def full_stack_trace(self) -> str:
        """Full stack trace string including the message and exception chain."""
        if self.exception is None:
            return self.message
        tb = "".join(traceback.format_exception(type(self.exception), self.exception, self.exception.__traceback__))
        return f"{self.message}\n{tb}"
