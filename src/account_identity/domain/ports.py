"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the account record shared by every layer and the
interfaces (ports) that the domain requires from infrastructure.
Adapters implement these protocols structurally.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol


class CodePurpose(str, Enum):
    """
    What a pending one-time code was issued for.

    Verification and reset codes share a single slot on the account; the
    purpose stored beside the code keeps one from being replayed as the
    other.
    """

    VERIFY_EMAIL = "verify_email"
    RESET_PASSWORD = "reset_password"


@dataclass(frozen=True)
class Account:
    """
    Durable identity record.

    ``verification_code``, ``verification_code_expires_at`` and
    ``verification_code_purpose`` are all set or all None. ``provider`` and
    ``provider_id`` are both set or both None. ``verification_attempts``
    counts wrong guesses against the pending code and restarts at zero
    with every issued code. ``verification_sent_at`` records the last issue
    and is kept after the code is cleared.
    """

    id: int
    email: str
    password_digest: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool = False
    verification_code: str | None = None
    verification_code_expires_at: datetime | None = None
    verification_code_purpose: CodePurpose | None = None
    verification_attempts: int = 0
    verification_sent_at: datetime | None = None
    provider: str | None = None
    provider_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_pending_code(self) -> bool:
        return self.verification_code is not None

    @property
    def has_password(self) -> bool:
        return self.password_digest is not None

    @property
    def display_name(self) -> str:
        """Greeting name for outgoing mail, "User" when no name is on file."""
        name = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return name or "User"


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


class AccountRepository(Protocol):
    """Port interface for account persistence."""

    def find_by_email(self, email: str) -> Account | None:
        ...

    def find_by_provider(self, provider: str, provider_id: str) -> Account | None:
        ...

    def find_by_id(self, account_id: int) -> Account | None:
        ...

    def insert_local(
        self,
        email: str,
        password_digest: str,
        first_name: str | None,
        last_name: str | None,
    ) -> Account:
        """
        Create an unverified password account.

        Raises:
            UniqueViolation: If the email is already taken
        """
        ...

    def insert_social(
        self,
        provider: str,
        provider_id: str,
        email: str,
        first_name: str | None,
        last_name: str | None,
        avatar_url: str | None,
    ) -> Account:
        """
        Create a verified account linked to an external provider.

        Raises:
            UniqueViolation: If the email or the provider pair is already taken
        """
        ...

    def set_verification_code(
        self,
        account_id: int,
        code: str,
        expires_at: datetime,
        purpose: CodePurpose,
        sent_at: datetime,
    ) -> None:
        """Store the code triple, replacing any pending code and its attempt count."""
        ...

    def record_failed_attempt(self, account_id: int, code: str, max_attempts: int) -> int:
        """
        Count one wrong guess against the pending ``code``.

        The increment and the check are a single atomic step. Reaching
        ``max_attempts`` clears the code triple.

        Returns:
            Attempt count after the increment, 0 if ``code`` is no longer
            the pending code
        """
        ...

    def clear_verification_code(self, account_id: int) -> None:
        ...

    def mark_verified(self, account_id: int) -> None:
        """Set email_verified and clear the code triple in one update."""
        ...

    def link_provider(
        self, account_id: int, provider: str, provider_id: str, avatar_url: str | None
    ) -> Account:
        """
        Attach a provider identity to an existing account.

        Fills avatar_url only when the account has none and forces
        email_verified to true. Returns the updated account.
        """
        ...

    def set_password_digest(self, account_id: int, digest: str) -> None:
        ...

    def sweep_expired_codes(self, now: datetime) -> int:
        """
        Clear every code whose expiry is before ``now``.

        Returns:
            Number of accounts cleared
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_verification_code(self, email: str, name: str, code: str) -> None:
        """
        Send an email verification code.

        Raises:
            DeliveryError: If the message could not be delivered
        """
        ...

    def send_reset_code(self, email: str, name: str, code: str) -> None:
        """
        Send a password reset code.

        Raises:
            DeliveryError: If the message could not be delivered
        """
        ...


class PasswordHasher(Protocol):
    """Port interface for password hashing."""

    def hash(self, secret: str) -> str:
        ...

    def verify(self, secret: str, digest: str) -> bool:
        ...

    def dummy_verify(self, secret: str) -> None:
        """Run one verification against a fixed digest to equalize timing."""
        ...


class ProviderTokenVerifier(Protocol):
    """Port interface for checking provider-issued ID tokens."""

    def supports(self, provider: str) -> bool:
        """Whether ``provider`` is configured for token verification."""
        ...

    def verify(self, provider: str, token: str) -> Mapping[str, Any]:
        """
        Verify an ID token issued by ``provider`` and return its claims.

        Raises:
            InvalidProviderToken: If signature, audience, issuer or expiry
                do not check out
        """
        ...
