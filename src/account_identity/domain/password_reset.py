"""
Password reset flow - Three-step credential replacement over the code ledger.

1. request_reset   - issue a RESET_PASSWORD code and mail it
2. confirm_code    - check the code without consuming it, hand out a grant
3. complete_reset  - with the grant, replace the password and clear the code

The grant is an HS256 JWT naming the account and the code expiry, signed
with the grant secret joined to the pending code. It is only honored while
that exact code is still pending and unexpired. Clearing the code in step 3
makes the grant single-use, and requesting a new code voids every grant
handed out for the old one.

Email verification state is never changed by this flow.
"""

import logging
from dataclasses import dataclass

import jwt

from .ledger import VerificationLedger
from .ports import Account, AccountRepository, CodePurpose, PasswordHasher, normalize_email
from .results import ErrorKind, Result, guard_store

logger = logging.getLogger(__name__)

GRANT_ALGORITHM = "HS256"


@dataclass
class PasswordResetFlow:
    """Domain service for the forgot/verify/reset sequence."""

    repository: AccountRepository
    hasher: PasswordHasher
    ledger: VerificationLedger
    grant_secret: str
    min_password_length: int = 8

    @guard_store
    def request_reset(self, email: str) -> Result[None]:
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)

        issued = self.ledger.issue(account, CodePurpose.RESET_PASSWORD)
        if not issued.ok:
            return Result.failure(issued.error)
        return Result.success()

    @guard_store
    def confirm_code(self, email: str, code: str) -> Result[str]:
        """
        Check a reset code and return the grant required by complete_reset().

        The code stays pending so the client can submit the new password as
        a separate request.
        """
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)

        checked = self.ledger.check(account, code, CodePurpose.RESET_PASSWORD)
        if not checked.ok:
            return Result.failure(checked.error)
        return Result.success(self._grant_for(account))

    @guard_store
    def complete_reset(self, email: str, new_password: str, grant: str) -> Result[None]:
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)

        # A confirm that happened before expiry does not carry past it.
        pending = self.ledger.ensure_pending(account, CodePurpose.RESET_PASSWORD)
        if not pending.ok:
            return Result.failure(pending.error)
        if not self._grant_matches(account, grant):
            return Result.failure(ErrorKind.INVALID_RESET_GRANT)
        if len(new_password) < self.min_password_length:
            return Result.failure(ErrorKind.WEAK_PASSWORD)

        self.repository.set_password_digest(account.id, self.hasher.hash(new_password))
        logger.info("Password reset for account %s", account.id)
        return self.ledger.invalidate(account.id)

    def _grant_key(self, account: Account) -> str:
        return f"{self.grant_secret}:{account.verification_code}"

    def _grant_for(self, account: Account) -> str:
        claims = {
            "sub": str(account.id),
            "purpose": CodePurpose.RESET_PASSWORD.value,
            "exp": account.verification_code_expires_at,
        }
        return jwt.encode(claims, self._grant_key(account), algorithm=GRANT_ALGORITHM)

    def _grant_matches(self, account: Account, grant: str) -> bool:
        # Expiry is checked against the ledger clock by ensure_pending().
        try:
            claims = jwt.decode(
                grant,
                self._grant_key(account),
                algorithms=[GRANT_ALGORITHM],
                options={"require": ["sub", "exp"], "verify_exp": False},
            )
        except jwt.PyJWTError:
            return False
        expires_at = int(account.verification_code_expires_at.timestamp())
        return (
            claims["sub"] == str(account.id)
            and claims.get("purpose") == CodePurpose.RESET_PASSWORD.value
            and claims["exp"] == expires_at
        )
