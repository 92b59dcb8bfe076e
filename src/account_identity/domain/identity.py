"""
Identity resolver - Maps credentials and provider identities to one account.

Local credentials resolve by email. Provider identities resolve with this
precedence, each step attempted only when the previous found nothing:

1. (provider, provider_id) - returning social user
2. email - existing account (password signup or another provider) is
   linked to the incoming provider identity
3. create - new verified account

Linking trusts the provider: it sets email_verified even when the email
was never proven locally, and keeps any local password. Email is the
reconciliation key and the provider id the lookup key, so a provider payload
missing either cannot resolve.

Uniqueness of email and provider pair is enforced by the store; this
module only reacts to UniqueViolation.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .exceptions import UniqueViolation
from .ledger import VerificationLedger
from .ports import Account, AccountRepository, CodePurpose, PasswordHasher, normalize_email
from .results import ErrorKind, Result, guard_store

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("google", "linkedin")


def _first_value(entries: Any) -> Any:
    """``value`` of the first entry of a profile list such as emails[] or photos[]."""
    if not isinstance(entries, list) or not entries:
        return None
    first = entries[0]
    return first.get("value") if isinstance(first, Mapping) else None


@dataclass(frozen=True)
class SocialIdentity:
    """Provider identity as handed over after the OAuth/OIDC exchange."""

    provider: str
    provider_id: str
    email: str | None
    first_name: str | None = None
    last_name: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_profile(cls, provider: str, profile: Mapping[str, Any]) -> "SocialIdentity":
        """
        Build an identity from a provider profile.

        Accepts OIDC userinfo claims (sub, email, given_name, family_name,
        picture) as returned by Google and LinkedIn, falling back to the
        normalized profile shape (id, emails[], name{}, photos[]). An email
        the provider marks unverified is dropped.
        """
        name = profile.get("name") if isinstance(profile.get("name"), Mapping) else {}
        email = profile.get("email") or _first_value(profile.get("emails"))
        avatar = profile.get("picture") or _first_value(profile.get("photos"))
        provider_id = profile.get("sub") or profile.get("id")
        if profile.get("email_verified") in (False, "false"):
            email = None

        return cls(
            provider=provider,
            provider_id=str(provider_id).strip() if provider_id is not None else "",
            email=email or None,
            first_name=profile.get("given_name") or name.get("givenName") or None,
            last_name=profile.get("family_name") or name.get("familyName") or None,
            avatar_url=avatar or None,
        )


@dataclass(frozen=True)
class SocialResolution:
    account: Account
    is_new: bool


@dataclass
class IdentityResolver:
    """Domain service for signup, login and provider resolution."""

    repository: AccountRepository
    hasher: PasswordHasher
    ledger: VerificationLedger
    min_password_length: int = 8

    @guard_store
    def create_local(
        self,
        email: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
    ) -> Result[Account]:
        """
        Create an unverified password account and send it a verification code.

        Returns:
            Result carrying the new account. EMAIL_TAKEN when the email is
            registered, including when a concurrent signup wins the insert
            race. DELIVERY_FAILED when the account and code were stored but
            the mail could not be sent.
        """
        normalized_email = normalize_email(email)
        if len(password) < self.min_password_length:
            return Result.failure(ErrorKind.WEAK_PASSWORD)
        if self.repository.find_by_email(normalized_email) is not None:
            return Result.failure(ErrorKind.EMAIL_TAKEN)

        digest = self.hasher.hash(password)
        try:
            account = self.repository.insert_local(normalized_email, digest, first_name, last_name)
        except UniqueViolation:
            logger.warning("Signup lost insert race for an existing email")
            return Result.failure(ErrorKind.EMAIL_TAKEN)
        logger.info("Created local account %s", account.id)

        issued = self.ledger.issue(account, CodePurpose.VERIFY_EMAIL)
        if not issued.ok:
            return Result.failure(issued.error)
        return Result.success(account)

    @guard_store
    def authenticate(self, email: str, password: str) -> Result[Account]:
        """
        Check an email/password pair.

        Unknown email, social-only account and wrong password all fail with
        INVALID_CREDENTIALS, and each path runs exactly one password
        verification so response time does not reveal which one occurred.
        Verification state is not checked here.
        """
        account = self.repository.find_by_email(normalize_email(email))
        if account is None or not account.has_password:
            self.hasher.dummy_verify(password)
            return Result.failure(ErrorKind.INVALID_CREDENTIALS)
        if not self.hasher.verify(password, account.password_digest):
            return Result.failure(ErrorKind.INVALID_CREDENTIALS)
        return Result.success(account)

    @guard_store
    def resolve_social(self, identity: SocialIdentity) -> Result[SocialResolution]:
        """
        Resolve a provider identity to exactly one account.

        Idempotent: resolving the same identity again returns the same
        account with is_new=False.
        """
        if not identity.provider_id:
            return Result.failure(ErrorKind.MISSING_PROVIDER_ID)
        if not identity.email:
            return Result.failure(ErrorKind.MISSING_EMAIL)

        account = self.repository.find_by_provider(identity.provider, identity.provider_id)
        if account is not None:
            return Result.success(SocialResolution(account=account, is_new=False))

        email = normalize_email(identity.email)
        try:
            linked = self._link_by_email(identity, email)
            if linked is not None:
                return Result.success(SocialResolution(account=linked, is_new=False))

            try:
                account = self.repository.insert_social(
                    identity.provider,
                    identity.provider_id,
                    email,
                    identity.first_name,
                    identity.last_name,
                    identity.avatar_url,
                )
            except UniqueViolation:
                # Another callback created the account first; take one more look.
                logger.warning(
                    "Concurrent %s resolution, retrying lookup by email", identity.provider
                )
                linked = self._link_by_email(identity, email)
                if linked is None:
                    return Result.failure(ErrorKind.RESOLUTION_CONFLICT)
                return Result.success(SocialResolution(account=linked, is_new=False))
        except UniqueViolation:
            return Result.failure(ErrorKind.RESOLUTION_CONFLICT)

        logger.info("Created %s account %s", identity.provider, account.id)
        return Result.success(SocialResolution(account=account, is_new=True))

    def _link_by_email(self, identity: SocialIdentity, email: str) -> Account | None:
        existing = self.repository.find_by_email(email)
        if existing is None:
            return None
        if existing.provider == identity.provider and existing.provider_id == identity.provider_id:
            return existing

        linked = self.repository.link_provider(
            existing.id, identity.provider, identity.provider_id, identity.avatar_url
        )
        logger.info("Linked %s identity to account %s", identity.provider, existing.id)
        return linked
