"""
Unit tests for the result type and error taxonomy.

Tests verify:
- Every ErrorKind maps to a category
- Result success/failure construction
- guard_store translates StoreError only
"""

import json

import pytest

from account_identity.domain.exceptions import StoreError
from account_identity.domain.results import ErrorCategory, ErrorKind, Result, guard_store


class TestErrorKind:
    """Tests for ErrorKind and its categories."""

    def test_every_kind_has_category(self) -> None:
        """No ErrorKind is left without a category."""
        for kind in ErrorKind:
            assert isinstance(kind.category, ErrorCategory)

    @pytest.mark.parametrize(
        ("kind", "category"),
        [
            (ErrorKind.EMAIL_TAKEN, ErrorCategory.CONFLICT),
            (ErrorKind.RESOLUTION_CONFLICT, ErrorCategory.CONFLICT),
            (ErrorKind.USER_NOT_FOUND, ErrorCategory.NOT_FOUND),
            (ErrorKind.INVALID_CREDENTIALS, ErrorCategory.AUTH_FAILURE),
            (ErrorKind.ALREADY_VERIFIED, ErrorCategory.STATE_VIOLATION),
            (ErrorKind.NO_CODE_ISSUED, ErrorCategory.STATE_VIOLATION),
            (ErrorKind.EXPIRED, ErrorCategory.STATE_VIOLATION),
            (ErrorKind.MISMATCH, ErrorCategory.STATE_VIOLATION),
            (ErrorKind.WEAK_PASSWORD, ErrorCategory.STATE_VIOLATION),
            (ErrorKind.MISSING_EMAIL, ErrorCategory.VALIDATION),
            (ErrorKind.MISSING_PROVIDER_ID, ErrorCategory.VALIDATION),
            (ErrorKind.INVALID_PROVIDER_TOKEN, ErrorCategory.AUTH_FAILURE),
            (ErrorKind.TOO_MANY_ATTEMPTS, ErrorCategory.RATE_LIMIT),
            (ErrorKind.RESEND_TOO_SOON, ErrorCategory.RATE_LIMIT),
            (ErrorKind.DELIVERY_FAILED, ErrorCategory.DEPENDENCY),
            (ErrorKind.STORE_ERROR, ErrorCategory.DEPENDENCY),
        ],
    )
    def test_kind_category(self, kind: ErrorKind, category: ErrorCategory) -> None:
        assert kind.category is category

    def test_kind_json_serializable(self) -> None:
        """str mixin allows direct JSON serialization."""
        assert json.dumps(ErrorKind.MISMATCH) == '"mismatch"'


class TestResult:
    """Tests for Result construction."""

    def test_success_carries_value(self) -> None:
        result = Result.success(42)
        assert result.ok
        assert result.value == 42
        assert result.error is None

    def test_success_without_value(self) -> None:
        result = Result.success()
        assert result.ok
        assert result.value is None

    def test_failure_carries_kind(self) -> None:
        result = Result.failure(ErrorKind.EXPIRED)
        assert not result.ok
        assert result.error is ErrorKind.EXPIRED
        assert result.value is None

    def test_result_is_immutable(self) -> None:
        result = Result.success(1)
        with pytest.raises(AttributeError):
            result.value = 2  # type: ignore[misc]


class TestGuardStore:
    """Tests for the guard_store decorator."""

    def test_passes_result_through(self) -> None:
        @guard_store
        def operation() -> Result[int]:
            return Result.success(7)

        assert operation().value == 7

    def test_store_error_becomes_store_error_kind(self) -> None:
        @guard_store
        def operation() -> Result[int]:
            raise StoreError("connection refused")

        result = operation()
        assert result.error is ErrorKind.STORE_ERROR

    def test_other_exceptions_propagate(self) -> None:
        @guard_store
        def operation() -> Result[int]:
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            operation()

    def test_preserves_function_name(self) -> None:
        @guard_store
        def named_operation() -> Result[None]:
            return Result.success()

        assert named_operation.__name__ == "named_operation"
