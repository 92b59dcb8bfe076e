"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, EmailStr, Field

from account_identity.domain.codes import CODE_LENGTH
from account_identity.domain.ports import Account

VerificationCode = Annotated[
    str,
    Field(
        min_length=CODE_LENGTH,
        max_length=CODE_LENGTH,
        pattern=r"^\d+$",
        description=f"{CODE_LENGTH}-digit code from the email",
    ),
]


class AccountResponse(BaseModel):
    """Public view of an account (no credential or code fields)."""

    id: int
    email: str
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool
    provider: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        return cls(
            id=account.id,
            email=account.email,
            first_name=account.first_name,
            last_name=account.last_name,
            avatar_url=account.avatar_url,
            email_verified=account.email_verified,
            provider=account.provider,
            created_at=account.created_at,
        )


class SignupRequest(BaseModel):
    """Request model for password signup."""

    email: EmailStr
    password: str = Field(..., min_length=8, description="User password (min 8 characters)")
    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)


class SignupResponse(BaseModel):
    message: str
    account: AccountResponse
    requires_verification: bool = True
    expires_in_seconds: int


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    message: str
    account: AccountResponse


class SocialCallbackRequest(BaseModel):
    """ID token issued by the provider at the end of the OAuth/OIDC exchange."""

    id_token: str = Field(
        ...,
        min_length=1,
        description="Provider-signed OIDC ID token (JWT) issued to this application",
    )


class SocialLoginResponse(BaseModel):
    message: str
    account: AccountResponse
    is_new: bool


class VerifyCodeRequest(BaseModel):
    """Request model for email verification."""

    email: EmailStr
    code: VerificationCode


class VerifyCodeResponse(BaseModel):
    message: str
    account_id: int


class EmailRequest(BaseModel):
    """Request carrying only an email (resend, forgot password)."""

    email: EmailStr


class MessageResponse(BaseModel):
    message: str


class VerificationStatusResponse(BaseModel):
    verified: bool
    expires_at: datetime | None = None


class ResetCodeRequest(BaseModel):
    email: EmailStr
    code: VerificationCode


class ResetCodeResponse(BaseModel):
    message: str
    reset_token: str = Field(..., description="Grant required by the password reset step")


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    new_password: str = Field(..., min_length=1)
    reset_token: str = Field(..., min_length=1)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    error: str
