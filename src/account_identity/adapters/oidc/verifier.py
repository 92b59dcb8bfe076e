"""
OIDC ID token verifier adapter - Implements ProviderTokenVerifier protocol.

A social callback hands over the ID token the provider issued to this
application's OAuth client. Nothing in it is trusted until the RS256
signature checks out against the provider's published JWKS and the
audience, issuer and expiry claims match.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import jwt

from account_identity.domain.exceptions import InvalidProviderToken

logger = logging.getLogger(__name__)

GOOGLE_JWKS_URI = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")
LINKEDIN_JWKS_URI = "https://www.linkedin.com/oauth/openid/jwks"
LINKEDIN_ISSUERS = ("https://www.linkedin.com/oauth",)

_ALGORITHMS = ["RS256"]
_REQUIRED_CLAIMS = ["iss", "sub", "aud", "exp", "iat"]


@dataclass(frozen=True)
class OidcProvider:
    """Where a provider publishes its keys and what its tokens must claim."""

    client_id: str
    jwks_uri: str
    issuers: tuple[str, ...]


def build_providers(
    google_client_id: str | None, linkedin_client_id: str | None
) -> dict[str, OidcProvider]:
    """Providers with a configured client id; the others stay disabled."""
    providers = {}
    if google_client_id:
        providers["google"] = OidcProvider(google_client_id, GOOGLE_JWKS_URI, GOOGLE_ISSUERS)
    if linkedin_client_id:
        providers["linkedin"] = OidcProvider(
            linkedin_client_id, LINKEDIN_JWKS_URI, LINKEDIN_ISSUERS
        )
    return providers


class OidcTokenVerifier:
    """
    Implements ProviderTokenVerifier protocol via PyJWT.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Signing keys are fetched lazily by one PyJWKClient per provider and
    cached for ``cache_seconds``.
    """

    def __init__(
        self,
        providers: Mapping[str, OidcProvider],
        key_clients: Mapping[str, Any] | None = None,
        cache_seconds: int = 3600,
    ) -> None:
        """
        Initialize verifier for the configured providers.

        Args:
            providers: Provider name to its client id, JWKS URI and issuers
            key_clients: Provider name to an object exposing
                get_signing_key_from_jwt(); defaults to a PyJWKClient on
                the provider's JWKS URI
            cache_seconds: How long fetched key sets are reused
        """
        self._providers = dict(providers)
        self._key_clients = {
            name: jwt.PyJWKClient(provider.jwks_uri, lifespan=cache_seconds)
            for name, provider in self._providers.items()
        }
        self._key_clients.update(key_clients or {})

    def supports(self, provider: str) -> bool:
        return provider in self._providers

    def verify(self, provider: str, token: str) -> Mapping[str, Any]:
        config = self._providers.get(provider)
        if config is None:
            raise InvalidProviderToken(f"{provider} login is not configured")

        try:
            signing_key = self._key_clients[provider].get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=_ALGORITHMS,
                audience=config.client_id,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as e:
            logger.warning("Rejected %s ID token: %s", provider, e)
            raise InvalidProviderToken(str(e)) from e

        if claims["iss"] not in config.issuers:
            logger.warning("Rejected %s ID token from issuer %s", provider, claims["iss"])
            raise InvalidProviderToken(f"unexpected issuer {claims['iss']}")
        return claims
