"""
bcrypt password hasher adapter - Implements PasswordHasher protocol.

bcrypt.checkpw() compares in constant time and its cost dominates the
response time of a login attempt. dummy_verify() runs the same check
against a digest of the configured cost, computed once per cost, so that
requests for unknown accounts take as long as requests for known ones.
"""

import functools

import bcrypt

# bcrypt only reads the first 72 bytes of a secret; newer releases reject longer input.
_MAX_SECRET_BYTES = 72


@functools.lru_cache(maxsize=None)
def _dummy_digest(rounds: int) -> bytes:
    """Digest of a throwaway secret at ``rounds``, used only to burn one checkpw() call."""
    return bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(rounds))


def _encode(secret: str) -> bytes:
    return secret.encode()[:_MAX_SECRET_BYTES]


class BcryptPasswordHasher:
    """
    Implements PasswordHasher protocol via bcrypt.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, rounds: int = 10) -> None:
        """
        Initialize hasher with a bcrypt work factor.

        Args:
            rounds: bcrypt cost factor (log2 of iterations)
        """
        self._rounds = rounds
        self._dummy_digest = _dummy_digest(rounds)

    def hash(self, secret: str) -> str:
        return bcrypt.hashpw(_encode(secret), bcrypt.gensalt(rounds=self._rounds)).decode()

    def verify(self, secret: str, digest: str) -> bool:
        try:
            return bcrypt.checkpw(_encode(secret), digest.encode())
        except ValueError:
            # Stored value is not a bcrypt digest.
            return False

    def dummy_verify(self, secret: str) -> None:
        bcrypt.checkpw(_encode(secret), self._dummy_digest)
