"""
Domain exceptions - Signals raised by adapters into the domain.

Expected business outcomes are never raised: domain services return a
``Result`` carrying an ``ErrorKind`` instead. These exceptions are the
narrow set of infrastructure conditions the domain knows how to translate.
"""


class IdentityError(Exception):
    """Base class for identity domain errors."""

    pass


class UniqueViolation(IdentityError):
    """Insert rejected by the store's email or provider-pair uniqueness constraint."""

    pass


class StoreError(IdentityError):
    """Account store operation failed."""

    pass


class DeliveryError(IdentityError):
    """Mail transport could not deliver a message."""

    pass


class InvalidProviderToken(IdentityError):
    """Provider ID token failed signature, audience, issuer or expiry checks."""

    pass
