"""
Railway-Oriented Programming (ROP) framework.

Explicit, composable error handling: stages return Result instead of raising.

    from railway import Result, ErrorCode

    def require_serial(serial: str) -> Result[str]:
        if not serial:
            return Result.failure(ErrorCode.VALIDATION_ERROR, "serial is required")
        return Result.success(serial)

    result = Result.success("01ab").flat_map(require_serial).map(str.upper)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.execution import (
    ExecutionContext,
    LoggingExecutionContext,
)
from railway.result_failures import ResultFailures
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "LoggingExecutionContext",
    "ResultFailures",
    "ResultAssertions",
]

__version__ = "1.1.0"
