"""Provider ID token adapters."""

from .verifier import OidcProvider, OidcTokenVerifier, build_providers

__all__ = ["OidcProvider", "OidcTokenVerifier", "build_providers"]
