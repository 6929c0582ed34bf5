"""
Tests for the Result monad.

Tests cover:
  - Success/Failure creation and introspection
  - map, map_failure, flat_map, either
  - Static factory from_computation
  - Pattern matching (match/case)
  - Equality and repr
"""

from __future__ import annotations

import pytest

from railway import ErrorCode, Failure, FailureDescription, Result, Success


# ═══════════════════════════════════════════════════════════════
# 1. Creation & Introspection
# ═══════════════════════════════════════════════════════════════


class TestSuccessCreation:
    def test_success_wraps_value(self):
        result = Result.success("00ab")
        assert result.is_success()
        assert not result.is_failure()
        assert result.value() == "00ab"

    def test_success_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Success(None)

    def test_success_is_truthy(self):
        assert Result.success(0)
        assert bool(Result.success(b""))


class TestFailureCreation:
    def test_failure_with_code_and_message(self):
        result = Result.failure(ErrorCode.NOT_FOUND, "certificate not found")
        assert result.is_failure()
        assert result.error().code is ErrorCode.NOT_FOUND
        assert result.error().message == "certificate not found"

    def test_failure_with_exception(self):
        ex = ConnectionError("reset")
        result = Result.failure(ErrorCode.DATABASE_ERROR, "lookup failed", ex)
        assert result.error().exception is ex

    def test_failure_from_description(self):
        desc = FailureDescription(ErrorCode.ALREADY_EXISTS, "stored")
        assert Result.failure_from(desc).error() is desc

    def test_failure_rejects_none(self):
        with pytest.raises(TypeError, match="must not be None"):
            Failure(None)

    def test_failure_is_falsy(self):
        assert not Result.failure(ErrorCode.PARSE_ERROR, "bad DER")


class TestIntrospection:
    def test_value_on_failure_raises(self):
        with pytest.raises(ValueError, match="Cannot get value from a Failure"):
            Result.failure(ErrorCode.NOT_FOUND, "missing").value()

    def test_error_on_success_raises(self):
        with pytest.raises(ValueError, match="Cannot get error from a Success"):
            Result.success(1).error()

    def test_has_code(self):
        result = Result.failure(ErrorCode.ALREADY_EXISTS, "dup")
        assert result.has_code(ErrorCode.ALREADY_EXISTS)
        assert not result.has_code(ErrorCode.NOT_FOUND)
        assert not Result.success(1).has_code(ErrorCode.ALREADY_EXISTS)


# ═══════════════════════════════════════════════════════════════
# 2. Transformations
# ═══════════════════════════════════════════════════════════════


class TestMap:
    def test_map_transforms_success_value(self):
        assert Result.success(0xAB).map(lambda s: f"{s:036x}").value().endswith("ab")

    def test_map_short_circuits_on_failure(self):
        called = []
        result = Result.failure(ErrorCode.PARSE_ERROR, "bad").map(called.append)
        assert result.has_code(ErrorCode.PARSE_ERROR)
        assert called == []


class TestMapFailure:
    def test_map_failure_transforms_error(self):
        result = Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, "timeout").map_failure(
            lambda err: err.with_message(f"Couldn't generate OCSP: {err.message}")
        )
        assert result.error().message == "Couldn't generate OCSP: timeout"
        assert result.error().code is ErrorCode.EXTERNAL_SERVICE_ERROR

    def test_map_failure_passes_through_success(self):
        result = Result.success(1).map_failure(lambda err: err.with_message("never"))
        assert result.value() == 1


class TestFlatMap:
    def test_flat_map_chains_success(self):
        result = Result.success(2).flat_map(lambda x: Result.success(x * 10))
        assert result.value() == 20

    def test_flat_map_short_circuits_on_first_failure(self):
        calls = []

        def lookup(serial: str) -> Result[str]:
            calls.append("lookup")
            return Result.failure(ErrorCode.ALREADY_EXISTS, "stored")

        def insert(serial: str) -> Result[str]:
            calls.append("insert")
            return Result.success(serial)

        result = Result.success("01").flat_map(lookup).flat_map(insert)

        assert result.has_code(ErrorCode.ALREADY_EXISTS)
        assert calls == ["lookup"]


class TestEither:
    def test_either_on_success(self):
        assert Result.success(3).either(lambda v: v + 1, lambda err: -1) == 4

    def test_either_on_failure(self):
        result = Result.failure(ErrorCode.NOT_FOUND, "missing")
        assert result.either(lambda v: "found", lambda err: err.code.value) == "NOT_FOUND"


class TestPatternMatching:
    def test_match(self):
        def describe(result: Result[int]) -> str:
            match result:
                case Success(value):
                    return f"ok {value}"
                case Failure(error):
                    return f"err {error.code.value}"
            return "unreachable"

        assert describe(Result.success(5)) == "ok 5"
        assert describe(Result.failure(ErrorCode.PARSE_ERROR, "x")) == "err PARSE_ERROR"


# ═══════════════════════════════════════════════════════════════
# 3. Static factories
# ═══════════════════════════════════════════════════════════════


class TestFromComputation:
    def test_success_when_no_exception(self):
        result = Result.from_computation(lambda: bytes.fromhex("3082"), ErrorCode.PARSE_ERROR, "bad hex")
        assert result.value() == b"\x30\x82"

    def test_failure_when_exception_raised(self):
        result = Result.from_computation(lambda: bytes.fromhex("zz"), ErrorCode.PARSE_ERROR, "bad hex")
        error = result.error()
        assert error.code is ErrorCode.PARSE_ERROR
        assert error.message == "bad hex"
        assert isinstance(error.exception, ValueError)


# ═══════════════════════════════════════════════════════════════
# 4. Equality & repr
# ═══════════════════════════════════════════════════════════════


class TestEqualityAndRepr:
    def test_success_equality(self):
        assert Result.success(1) == Result.success(1)
        assert Result.success(1) != Result.success(2)

    def test_failure_equality_ignores_timestamp(self):
        assert Result.failure(ErrorCode.NOT_FOUND, "x") == Result.failure(ErrorCode.NOT_FOUND, "x")
        assert Result.failure(ErrorCode.NOT_FOUND, "x") != Result.failure(ErrorCode.NOT_FOUND, "y")

    def test_success_not_equal_to_failure(self):
        assert Result.success(1) != Result.failure(ErrorCode.NOT_FOUND, "x")

    def test_repr(self):
        assert repr(Result.success(1)) == "Success(1)"
        assert repr(Result.failure(ErrorCode.NOT_FOUND, "x")) == "Failure(NOT_FOUND: 'x')"
