"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable clock for expiry tests
- In-memory account store and a mocked mail transport
- Domain services wired the way the API wires them
- An RSA signing key and an ID token verifier trusting it
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from account_identity.adapters.hashing import BcryptPasswordHasher
from account_identity.adapters.oidc.verifier import (
    GOOGLE_ISSUERS,
    LINKEDIN_ISSUERS,
    OidcProvider,
    OidcTokenVerifier,
)
from account_identity.adapters.repository.memory import InMemoryAccountRepository
from account_identity.domain.identity import IdentityResolver
from account_identity.domain.ledger import VerificationLedger
from account_identity.domain.password_reset import PasswordResetFlow

CODE_TTL = timedelta(minutes=10)
CLIENT_ID = "test-client-id"
ISSUERS = {"google": GOOGLE_ISSUERS[0], "linkedin": LINKEDIN_ISSUERS[0]}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def repository() -> InMemoryAccountRepository:
    return InMemoryAccountRepository()


@pytest.fixture
def sender() -> Mock:
    """Mail transport mock; inspect send_verification_code / send_reset_code calls."""
    return Mock()


@pytest.fixture
def hasher() -> BcryptPasswordHasher:
    # Minimum bcrypt cost keeps the suite fast.
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def ledger(
    repository: InMemoryAccountRepository, sender: Mock, clock: FakeClock
) -> VerificationLedger:
    return VerificationLedger(
        repository=repository, email_sender=sender, code_ttl=CODE_TTL, clock=clock
    )


@pytest.fixture
def resolver(
    repository: InMemoryAccountRepository,
    hasher: BcryptPasswordHasher,
    ledger: VerificationLedger,
) -> IdentityResolver:
    return IdentityResolver(repository=repository, hasher=hasher, ledger=ledger)


@pytest.fixture
def reset_flow(
    repository: InMemoryAccountRepository,
    hasher: BcryptPasswordHasher,
    ledger: VerificationLedger,
) -> PasswordResetFlow:
    return PasswordResetFlow(
        repository=repository, hasher=hasher, ledger=ledger, grant_secret="test-secret"
    )


@pytest.fixture
def last_code(sender: Mock) -> Callable[..., str]:
    """Return the code passed to the most recent call of a sender method."""

    def _last_code(method: str = "send_verification_code") -> str:
        return getattr(sender, method).call_args[0][2]

    return _last_code


class StaticKeyClient:
    """Stands in for PyJWKClient, always handing out one public key."""

    def __init__(self, public_key) -> None:
        self.public_key = public_key

    def get_signing_key_from_jwt(self, token: str) -> SimpleNamespace:
        return SimpleNamespace(key=self.public_key)


@pytest.fixture(scope="session")
def provider_key() -> rsa.RSAPrivateKey:
    """Key the fake providers sign ID tokens with."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def token_verifier(provider_key: rsa.RSAPrivateKey) -> OidcTokenVerifier:
    key_client = StaticKeyClient(provider_key.public_key())
    return OidcTokenVerifier(
        {
            "google": OidcProvider(CLIENT_ID, "https://keys.invalid/google", GOOGLE_ISSUERS),
            "linkedin": OidcProvider(CLIENT_ID, "https://keys.invalid/linkedin", LINKEDIN_ISSUERS),
        },
        key_clients={"google": key_client, "linkedin": key_client},
    )


@pytest.fixture
def id_token(provider_key: rsa.RSAPrivateKey) -> Callable[..., str]:
    """Sign an ID token as ``provider`` would; keyword claims override the defaults."""

    def _id_token(provider: str = "google", key=None, algorithm: str = "RS256", **claims) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iss": ISSUERS[provider],
            "aud": CLIENT_ID,
            "iat": now,
            "exp": now + timedelta(minutes=5),
            "email_verified": True,
            **claims,
        }
        return jwt.encode(payload, key or provider_key, algorithm=algorithm)

    return _id_token
