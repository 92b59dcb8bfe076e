"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes. The account
store and the provider token verifier are created once by the application
lifespan and read from app.state; nothing here holds a global store handle.
"""

from datetime import timedelta

from fastapi import Depends, Request

from account_identity.adapters.hashing import BcryptPasswordHasher
from account_identity.adapters.oidc import OidcTokenVerifier, build_providers
from account_identity.adapters.smtp.console import ConsoleEmailSender
from account_identity.adapters.smtp.smtp import SmtpEmailSender
from account_identity.config.settings import Settings, get_settings
from account_identity.domain.identity import IdentityResolver
from account_identity.domain.ledger import VerificationLedger
from account_identity.domain.password_reset import PasswordResetFlow
from account_identity.domain.ports import (
    AccountRepository,
    EmailSender,
    PasswordHasher,
    ProviderTokenVerifier,
)

# Module-level singleton - ConsoleEmailSender is stateless
_console_sender = ConsoleEmailSender()


def build_email_sender(settings: Settings) -> EmailSender:
    """Select the mail transport configured by ``mail_backend``."""
    if settings.mail_backend == "smtp":
        return SmtpEmailSender(
            host=settings.smtp_host,
            port=settings.smtp_port,
            sender_address=settings.email_from,
            sender_name=settings.email_from_name,
            code_ttl_minutes=settings.code_ttl_minutes,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    return _console_sender


def build_ledger(
    repository: AccountRepository, email_sender: EmailSender, settings: Settings
) -> VerificationLedger:
    return VerificationLedger(
        repository=repository,
        email_sender=email_sender,
        code_ttl=timedelta(minutes=settings.code_ttl_minutes),
        max_attempts=settings.max_code_attempts,
        resend_interval=timedelta(seconds=settings.resend_interval_seconds),
    )


def build_token_verifier(settings: Settings) -> ProviderTokenVerifier:
    return OidcTokenVerifier(
        build_providers(settings.google_client_id, settings.linkedin_client_id),
        cache_seconds=settings.provider_jwks_cache_seconds,
    )


def get_repository(request: Request) -> AccountRepository:
    """
    Get the account store from app state.

    The store is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.repository


def get_token_verifier(request: Request) -> ProviderTokenVerifier:
    """Get the provider token verifier built at startup from app.state."""
    return request.app.state.token_verifier


def get_email_sender(settings: Settings = Depends(get_settings)) -> EmailSender:
    return build_email_sender(settings)


def get_password_hasher(settings: Settings = Depends(get_settings)) -> PasswordHasher:
    return BcryptPasswordHasher(rounds=settings.bcrypt_cost)


def get_ledger(
    repository: AccountRepository = Depends(get_repository),
    email_sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> VerificationLedger:
    return build_ledger(repository, email_sender, settings)


def get_identity_resolver(
    repository: AccountRepository = Depends(get_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    ledger: VerificationLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> IdentityResolver:
    """
    Create identity resolver with injected dependencies.

    Wires together the store, hasher and ledger for the domain service.
    """
    return IdentityResolver(
        repository=repository,
        hasher=hasher,
        ledger=ledger,
        min_password_length=settings.min_password_length,
    )


def get_password_reset_flow(
    repository: AccountRepository = Depends(get_repository),
    hasher: PasswordHasher = Depends(get_password_hasher),
    ledger: VerificationLedger = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> PasswordResetFlow:
    return PasswordResetFlow(
        repository=repository,
        hasher=hasher,
        ledger=ledger,
        grant_secret=settings.reset_grant_secret,
        min_password_length=settings.min_password_length,
    )
