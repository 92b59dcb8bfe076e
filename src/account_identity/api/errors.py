"""
API error mapping - Translate domain error kinds into HTTP responses.

Every ErrorKind has exactly one entry in ERROR_RESPONSES. Messages are
generic; the machine-readable ``error`` field carries the kind.
"""

from typing import TypeVar

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from account_identity.domain.results import ErrorKind, Result

T = TypeVar("T")

ERROR_RESPONSES: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.MISSING_EMAIL: (
        status.HTTP_400_BAD_REQUEST,
        "Provider account has no email address",
    ),
    ErrorKind.MISSING_PROVIDER_ID: (
        status.HTTP_400_BAD_REQUEST,
        "Provider account has no identifier",
    ),
    ErrorKind.EMAIL_TAKEN: (
        status.HTTP_409_CONFLICT,
        "A user with this email already exists",
    ),
    ErrorKind.RESOLUTION_CONFLICT: (
        status.HTTP_409_CONFLICT,
        "Account could not be resolved, please try again",
    ),
    ErrorKind.USER_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "User not found"),
    ErrorKind.INVALID_CREDENTIALS: (
        status.HTTP_401_UNAUTHORIZED,
        "Invalid email or password",
    ),
    ErrorKind.EMAIL_NOT_VERIFIED: (
        status.HTTP_403_FORBIDDEN,
        "Please verify your email address to continue",
    ),
    ErrorKind.INVALID_PROVIDER_TOKEN: (
        status.HTTP_401_UNAUTHORIZED,
        "Provider sign-in could not be verified",
    ),
    ErrorKind.ALREADY_VERIFIED: (status.HTTP_400_BAD_REQUEST, "Email already verified"),
    ErrorKind.NO_CODE_ISSUED: (
        status.HTTP_400_BAD_REQUEST,
        "No code found. Please request a new one.",
    ),
    ErrorKind.EXPIRED: (
        status.HTTP_400_BAD_REQUEST,
        "Code has expired. Please request a new one.",
    ),
    ErrorKind.MISMATCH: (status.HTTP_400_BAD_REQUEST, "Invalid code"),
    ErrorKind.WEAK_PASSWORD: (status.HTTP_400_BAD_REQUEST, "Password is too short"),
    ErrorKind.INVALID_RESET_GRANT: (
        status.HTTP_400_BAD_REQUEST,
        "Reset session is not valid. Please verify your code again.",
    ),
    ErrorKind.TOO_MANY_ATTEMPTS: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "Too many attempts. Please request a new code.",
    ),
    ErrorKind.RESEND_TOO_SOON: (
        status.HTTP_429_TOO_MANY_REQUESTS,
        "A code was sent recently. Please wait before requesting another.",
    ),
    ErrorKind.DELIVERY_FAILED: (
        status.HTTP_502_BAD_GATEWAY,
        "Email could not be sent. Please request a new code.",
    ),
    ErrorKind.STORE_ERROR: (
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
    ),
}


class ApiFailure(Exception):
    """Raised by routes to short-circuit with a mapped error response."""

    def __init__(self, kind: ErrorKind) -> None:
        super().__init__(kind.value)
        self.kind = kind


def unwrap(result: Result[T]) -> T:
    """Return the success value or raise ApiFailure for the error kind."""
    if not result.ok:
        raise ApiFailure(result.error)
    return result.value


async def api_failure_handler(request: Request, exc: ApiFailure) -> JSONResponse:
    status_code, message = ERROR_RESPONSES[exc.kind]
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "error": exc.kind.value},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiFailure, api_failure_handler)
