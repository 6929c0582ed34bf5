"""
Convenience factory methods for common Result failures.

    ResultFailures.not_found("certificate", serial)
    ResultFailures.already_exists("precertificate", serial)
"""

from __future__ import annotations

from railway.failure import ErrorCode
from railway.result import Result


class ResultFailures:
    """Factory methods for the failure kinds adapters report most often."""

    @staticmethod
    def not_found(resource_type: str, identifier: str) -> Result:
        return Result.failure(
            ErrorCode.NOT_FOUND,
            f"{resource_type} not found with identifier: {identifier}",
        )

    @staticmethod
    def already_exists(resource_type: str, identifier: str) -> Result:
        return Result.failure(
            ErrorCode.ALREADY_EXISTS,
            f"{resource_type} already exists with identifier: {identifier}",
        )
