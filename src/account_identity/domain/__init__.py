"""
Domain layer - Identity resolution and verification code lifecycle.

This package contains the core business logic: the verification ledger,
the identity resolver and the password reset flow. It defines its own
port interfaces for infrastructure abstraction and has no framework
imports.
"""

from .codes import CODE_LENGTH, generate_code
from .exceptions import (
    DeliveryError,
    IdentityError,
    InvalidProviderToken,
    StoreError,
    UniqueViolation,
)
from .identity import SUPPORTED_PROVIDERS, IdentityResolver, SocialIdentity, SocialResolution
from .ledger import VerificationLedger, VerificationStatus
from .password_reset import PasswordResetFlow
from .ports import (
    Account,
    AccountRepository,
    CodePurpose,
    EmailSender,
    PasswordHasher,
    ProviderTokenVerifier,
    normalize_email,
)
from .results import ErrorCategory, ErrorKind, Result

__all__ = [
    "CODE_LENGTH",
    "SUPPORTED_PROVIDERS",
    "Account",
    "AccountRepository",
    "CodePurpose",
    "DeliveryError",
    "EmailSender",
    "ErrorCategory",
    "ErrorKind",
    "IdentityError",
    "IdentityResolver",
    "InvalidProviderToken",
    "PasswordHasher",
    "PasswordResetFlow",
    "ProviderTokenVerifier",
    "Result",
    "SocialIdentity",
    "SocialResolution",
    "StoreError",
    "UniqueViolation",
    "VerificationLedger",
    "VerificationStatus",
    "generate_code",
    "normalize_email",
]
