"""
Operation results - Closed error taxonomy and tagged result type.

Every public domain operation returns a ``Result``: either a success value
or exactly one ``ErrorKind``. Callers dispatch on the kind (or its
category), never on message strings.
"""

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from .exceptions import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ErrorCategory(str, Enum):
    """Coarse grouping of error kinds."""

    VALIDATION = "validation"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    AUTH_FAILURE = "auth_failure"
    STATE_VIOLATION = "state_violation"
    RATE_LIMIT = "rate_limit"
    DEPENDENCY = "dependency"


class ErrorKind(str, Enum):
    """
    Every failure a domain operation can report.

    The str mixin keeps the value JSON serializable so the API can echo it
    back as a machine-readable error code.
    """

    MISSING_EMAIL = "missing_email"
    MISSING_PROVIDER_ID = "missing_provider_id"
    EMAIL_TAKEN = "email_taken"
    RESOLUTION_CONFLICT = "resolution_conflict"
    USER_NOT_FOUND = "user_not_found"
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    INVALID_PROVIDER_TOKEN = "invalid_provider_token"
    ALREADY_VERIFIED = "already_verified"
    NO_CODE_ISSUED = "no_code_issued"
    EXPIRED = "expired"
    MISMATCH = "mismatch"
    WEAK_PASSWORD = "weak_password"
    INVALID_RESET_GRANT = "invalid_reset_grant"
    TOO_MANY_ATTEMPTS = "too_many_attempts"
    RESEND_TOO_SOON = "resend_too_soon"
    DELIVERY_FAILED = "delivery_failed"
    STORE_ERROR = "store_error"

    @property
    def category(self) -> ErrorCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    ErrorKind.MISSING_EMAIL: ErrorCategory.VALIDATION,
    ErrorKind.MISSING_PROVIDER_ID: ErrorCategory.VALIDATION,
    ErrorKind.EMAIL_TAKEN: ErrorCategory.CONFLICT,
    ErrorKind.RESOLUTION_CONFLICT: ErrorCategory.CONFLICT,
    ErrorKind.USER_NOT_FOUND: ErrorCategory.NOT_FOUND,
    ErrorKind.INVALID_CREDENTIALS: ErrorCategory.AUTH_FAILURE,
    ErrorKind.EMAIL_NOT_VERIFIED: ErrorCategory.AUTH_FAILURE,
    ErrorKind.INVALID_PROVIDER_TOKEN: ErrorCategory.AUTH_FAILURE,
    ErrorKind.ALREADY_VERIFIED: ErrorCategory.STATE_VIOLATION,
    ErrorKind.NO_CODE_ISSUED: ErrorCategory.STATE_VIOLATION,
    ErrorKind.EXPIRED: ErrorCategory.STATE_VIOLATION,
    ErrorKind.MISMATCH: ErrorCategory.STATE_VIOLATION,
    ErrorKind.WEAK_PASSWORD: ErrorCategory.STATE_VIOLATION,
    ErrorKind.INVALID_RESET_GRANT: ErrorCategory.STATE_VIOLATION,
    ErrorKind.TOO_MANY_ATTEMPTS: ErrorCategory.RATE_LIMIT,
    ErrorKind.RESEND_TOO_SOON: ErrorCategory.RATE_LIMIT,
    ErrorKind.DELIVERY_FAILED: ErrorCategory.DEPENDENCY,
    ErrorKind.STORE_ERROR: ErrorCategory.DEPENDENCY,
}


@dataclass(frozen=True)
class Result(Generic[T]):
    """Success value or a single error kind, never both."""

    value: T | None = None
    error: ErrorKind | None = None

    @classmethod
    def success(cls, value: T | None = None) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorKind) -> "Result[T]":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


def guard_store(operation: Callable[..., "Result[T]"]) -> Callable[..., "Result[T]"]:
    """
    Report StoreError from the wrapped operation as ``ErrorKind.STORE_ERROR``.

    Only StoreError is translated; any other exception propagates.
    """

    @functools.wraps(operation)
    def wrapper(*args, **kwargs) -> "Result[T]":
        try:
            return operation(*args, **kwargs)
        except StoreError:
            logger.exception("Account store failure in %s", operation.__qualname__)
            return Result.failure(ErrorKind.STORE_ERROR)

    return wrapper
