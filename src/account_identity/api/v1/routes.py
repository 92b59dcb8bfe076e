"""
API v1 routes.

Defines REST endpoints for signup, login, provider callbacks, email
verification and password reset. Handlers are plain ``def`` so FastAPI
runs the blocking store and bcrypt calls in its threadpool.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import EmailStr

from account_identity.api.dependencies import (
    get_identity_resolver,
    get_ledger,
    get_password_reset_flow,
    get_token_verifier,
)
from account_identity.api.errors import ApiFailure, unwrap
from account_identity.api.models import (
    AccountResponse,
    EmailRequest,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ResetCodeRequest,
    ResetCodeResponse,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    SocialCallbackRequest,
    SocialLoginResponse,
    VerificationStatusResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)
from account_identity.config.settings import Settings, get_settings
from account_identity.domain.exceptions import InvalidProviderToken
from account_identity.domain.identity import SUPPORTED_PROVIDERS, IdentityResolver, SocialIdentity
from account_identity.domain.ledger import VerificationLedger
from account_identity.domain.password_reset import PasswordResetFlow
from account_identity.domain.ports import ProviderTokenVerifier
from account_identity.domain.results import ErrorKind

router = APIRouter(tags=["v1"])

PROVIDER_LABELS = {"google": "Google", "linkedin": "LinkedIn"}

_NOT_FOUND = {404: {"model": ErrorResponse, "description": "User not found"}}
_TOO_SOON = {429: {"model": ErrorResponse, "description": "Code requested too soon"}}
_CODE_ERRORS = {
    400: {"model": ErrorResponse, "description": "No code, expired code or wrong code"},
    429: {"model": ErrorResponse, "description": "Too many wrong codes, code cleared"},
    **_NOT_FOUND,
}


@router.post(
    "/auth/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        409: {"model": ErrorResponse, "description": "Email already registered"},
        502: {"model": ErrorResponse, "description": "Verification email not sent"},
        422: {"description": "Validation error"},
    },
    summary="Sign up with email and password",
    description="Create an unverified account. A verification code is sent to the email.",
)
def signup(
    request_data: SignupRequest,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    settings: Settings = Depends(get_settings),
) -> SignupResponse:
    account = unwrap(
        resolver.create_local(
            request_data.email,
            request_data.password,
            request_data.first_name,
            request_data.last_name,
        )
    )
    return SignupResponse(
        message="Account created successfully. Please check your email for verification.",
        account=AccountResponse.from_account(account),
        expires_in_seconds=settings.code_ttl_minutes * 60,
    )


@router.post(
    "/auth/login",
    response_model=LoginResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid email or password"}},
    summary="Log in with email and password",
)
def login(
    request_data: LoginRequest,
    resolver: IdentityResolver = Depends(get_identity_resolver),
) -> LoginResponse:
    """
    Check credentials. Unverified accounts may log in; the response
    carries ``email_verified`` so the client can route to verification.
    """
    account = unwrap(resolver.authenticate(request_data.email, request_data.password))
    return LoginResponse(message="Login successful", account=AccountResponse.from_account(account))


@router.post(
    "/auth/social/{provider}/callback",
    response_model=SocialLoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Provider identity has no email or id"},
        401: {"model": ErrorResponse, "description": "ID token failed verification"},
        404: {"description": "Unsupported provider"},
        409: {"model": ErrorResponse, "description": "Concurrent resolution conflict"},
    },
    summary="Resolve a provider identity",
    description="Called after the OAuth/OIDC exchange with the ID token the provider issued. "
    "The token is verified against the provider's signing keys before its claims are used. "
    "Returns the existing, linked or newly created account.",
)
def social_callback(
    provider: str,
    request_data: SocialCallbackRequest,
    resolver: IdentityResolver = Depends(get_identity_resolver),
    verifier: ProviderTokenVerifier = Depends(get_token_verifier),
) -> SocialLoginResponse:
    if provider not in SUPPORTED_PROVIDERS or not verifier.supports(provider):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unsupported provider")

    try:
        claims = verifier.verify(provider, request_data.id_token)
    except InvalidProviderToken:
        raise ApiFailure(ErrorKind.INVALID_PROVIDER_TOKEN) from None

    identity = SocialIdentity.from_profile(provider, claims)
    resolution = unwrap(resolver.resolve_social(identity))

    label = PROVIDER_LABELS[provider]
    message = (
        f"Account created successfully with {label}!"
        if resolution.is_new
        else f"Successfully logged in with {label}!"
    )
    return SocialLoginResponse(
        message=message,
        account=AccountResponse.from_account(resolution.account),
        is_new=resolution.is_new,
    )


@router.post(
    "/verify/code",
    response_model=VerifyCodeResponse,
    responses=_CODE_ERRORS,
    summary="Verify email with code",
)
def verify_code(
    request_data: VerifyCodeRequest,
    ledger: VerificationLedger = Depends(get_ledger),
) -> VerifyCodeResponse:
    account = unwrap(ledger.verify_code(request_data.email, request_data.code))
    return VerifyCodeResponse(message="Email verified successfully", account_id=account.id)


@router.post(
    "/verify/resend",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Email already verified"},
        **_TOO_SOON,
        502: {"model": ErrorResponse, "description": "Verification email not sent"},
        **_NOT_FOUND,
    },
    summary="Resend verification code",
    description="Issue a new code. Any previously sent code stops working.",
)
def resend_code(
    request_data: EmailRequest,
    ledger: VerificationLedger = Depends(get_ledger),
) -> MessageResponse:
    unwrap(ledger.resend_code(request_data.email))
    return MessageResponse(message="Verification code resent successfully")


@router.get(
    "/verify/status",
    response_model=VerificationStatusResponse,
    responses=_NOT_FOUND,
    summary="Check verification status",
)
def verification_status(
    email: EmailStr = Query(...),
    ledger: VerificationLedger = Depends(get_ledger),
) -> VerificationStatusResponse:
    current = unwrap(ledger.check_status(email))
    return VerificationStatusResponse(verified=current.verified, expires_at=current.expires_at)


@router.post(
    "/password/forgot",
    response_model=MessageResponse,
    responses={
        **_TOO_SOON,
        502: {"model": ErrorResponse, "description": "Reset email not sent"},
        **_NOT_FOUND,
    },
    summary="Request a password reset code",
)
def forgot_password(
    request_data: EmailRequest,
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
) -> MessageResponse:
    unwrap(flow.request_reset(request_data.email))
    return MessageResponse(message="Password reset code sent to your email")


@router.post(
    "/password/verify-code",
    response_model=ResetCodeResponse,
    responses=_CODE_ERRORS,
    summary="Verify a password reset code",
    description="Checks the code without consuming it and returns the reset token "
    "required to set the new password.",
)
def verify_reset_code(
    request_data: ResetCodeRequest,
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
) -> ResetCodeResponse:
    grant = unwrap(flow.confirm_code(request_data.email, request_data.code))
    return ResetCodeResponse(message="Code verified successfully", reset_token=grant)


@router.post(
    "/password/reset",
    response_model=MessageResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Weak password or invalid reset session"},
        **_NOT_FOUND,
    },
    summary="Set a new password",
)
def reset_password(
    request_data: ResetPasswordRequest,
    flow: PasswordResetFlow = Depends(get_password_reset_flow),
) -> MessageResponse:
    unwrap(
        flow.complete_reset(
            request_data.email, request_data.new_password, request_data.reset_token
        )
    )
    return MessageResponse(message="Password reset successfully")
