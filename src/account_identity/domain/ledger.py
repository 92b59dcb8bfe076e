"""
Verification ledger - Lifecycle of the one-time code attached to an account.

Code State Machine
==================

States (per account, over the verification_code* fields):
- NO_CODE: no code on record
- PENDING: (code, expires_at, purpose) stored
- VERIFIED / INVALIDATED: code cleared after use
- EXPIRED: now > expires_at; rejected live, cleared later by the sweep

Transitions:
    NO_CODE  -> PENDING       issue()
    PENDING  -> PENDING       issue() again (previous code is overwritten)
    PENDING  -> VERIFIED      validate() with the exact code
    PENDING  -> INVALIDATED   invalidate() (password reset completion)
    PENDING  -> NO_CODE       sweep_expired() once expired
    PENDING  -> NO_CODE       max_attempts wrong guesses (TOO_MANY_ATTEMPTS)

An account holds a single code slot, so only the most recently issued code
can ever validate. The stored purpose keeps a verification code from
satisfying a reset and vice versa.

Guessing is bounded twice: each code tolerates max_attempts wrong guesses,
and a new code is not issued within resend_interval of the previous one.
"""

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from .codes import CODE_LENGTH, generate_code
from .exceptions import DeliveryError
from .ports import Account, AccountRepository, CodePurpose, EmailSender, normalize_email
from .results import ErrorKind, Result, guard_store

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VerificationStatus:
    """Snapshot returned by check_status()."""

    verified: bool
    expires_at: datetime | None


@dataclass
class VerificationLedger:
    """
    Domain service owning code issuance, validation and expiry.

    All state lives in the account store; the ledger holds no per-account
    state of its own and performs no locking. Concurrent issues for the
    same account resolve last-write-wins, which is the intended "latest
    code only" behavior.
    """

    repository: AccountRepository
    email_sender: EmailSender
    code_ttl: timedelta = timedelta(minutes=10)
    code_length: int = CODE_LENGTH
    max_attempts: int = 3
    resend_interval: timedelta = timedelta(0)
    clock: Callable[[], datetime] = utcnow

    @guard_store
    def issue(
        self, account: Account, purpose: CodePurpose = CodePurpose.VERIFY_EMAIL
    ) -> Result[str]:
        """
        Generate, persist and mail a fresh code for ``account``.

        The code is persisted before delivery is attempted, so a
        DELIVERY_FAILED result still leaves a valid code that a resend
        can replace.

        Returns:
            Result carrying the issued code. RESEND_TOO_SOON when the
            previous code went out less than resend_interval ago.
        """
        now = self.clock()
        sent_at = account.verification_sent_at
        if sent_at is not None and now < sent_at + self.resend_interval:
            return Result.failure(ErrorKind.RESEND_TOO_SOON)

        code = generate_code(self.code_length)
        self.repository.set_verification_code(
            account.id, code, now + self.code_ttl, purpose, sent_at=now
        )
        logger.info("Issued %s code for account %s", purpose.value, account.id)

        try:
            if purpose is CodePurpose.RESET_PASSWORD:
                self.email_sender.send_reset_code(account.email, account.display_name, code)
            else:
                self.email_sender.send_verification_code(account.email, account.display_name, code)
        except DeliveryError:
            logger.warning("Failed to deliver %s code to account %s", purpose.value, account.id)
            return Result.failure(ErrorKind.DELIVERY_FAILED)
        return Result.success(code)

    def ensure_pending(self, account: Account, purpose: CodePurpose) -> Result[Account]:
        """
        Fail NO_CODE_ISSUED unless an unexpired ``purpose`` code is pending.

        A pending code issued for another purpose counts as no code.
        """
        if not account.has_pending_code or account.verification_code_purpose != purpose:
            return Result.failure(ErrorKind.NO_CODE_ISSUED)
        if self.clock() > account.verification_code_expires_at:
            return Result.failure(ErrorKind.EXPIRED)
        return Result.success(account)

    def check(self, account: Account, code: str, purpose: CodePurpose) -> Result[Account]:
        """
        Check ``code`` against the pending code without consuming it.

        Order: NO_CODE_ISSUED, EXPIRED, MISMATCH. The wrong guess that
        reaches max_attempts clears the code and fails TOO_MANY_ATTEMPTS.
        """
        pending = self.ensure_pending(account, purpose)
        if not pending.ok:
            return pending
        if not secrets.compare_digest(account.verification_code.encode(), code.encode()):
            attempts = self.repository.record_failed_attempt(
                account.id, account.verification_code, self.max_attempts
            )
            if attempts >= self.max_attempts:
                logger.warning(
                    "Code for account %s cleared after %d failed attempts", account.id, attempts
                )
                return Result.failure(ErrorKind.TOO_MANY_ATTEMPTS)
            return Result.failure(ErrorKind.MISMATCH)
        return Result.success(account)

    @guard_store
    def validate(
        self, account_id: int, code: str, purpose: CodePurpose = CodePurpose.VERIFY_EMAIL
    ) -> Result[Account]:
        """
        Consume the pending code for ``account_id``.

        On the verification path an already verified account fails with
        ALREADY_VERIFIED regardless of the code supplied, and success sets
        email_verified. On the reset path success only clears the code.
        """
        account = self.repository.find_by_id(account_id)
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)
        return self._consume(account, code, purpose)

    @guard_store
    def invalidate(self, account_id: int) -> Result[None]:
        """Clear the pending code without touching email_verified."""
        self.repository.clear_verification_code(account_id)
        return Result.success()

    @guard_store
    def sweep_expired(self) -> Result[int]:
        """
        Clear every code past its expiry.

        Hygiene only: validate() already rejects expired codes live.
        """
        cleaned = self.repository.sweep_expired_codes(self.clock())
        logger.info("Cleaned up %d expired codes", cleaned)
        return Result.success(cleaned)

    # Email-keyed operations exposed to the transport layer

    @guard_store
    def verify_code(self, email: str, code: str) -> Result[Account]:
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)
        return self._consume(account, code, CodePurpose.VERIFY_EMAIL)

    @guard_store
    def resend_code(self, email: str) -> Result[str]:
        """Issue a new verification code, invalidating the previous one."""
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)
        if account.email_verified:
            return Result.failure(ErrorKind.ALREADY_VERIFIED)
        return self.issue(account, CodePurpose.VERIFY_EMAIL)

    @guard_store
    def check_status(self, email: str) -> Result[VerificationStatus]:
        account = self.repository.find_by_email(normalize_email(email))
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)
        return Result.success(
            VerificationStatus(
                verified=account.email_verified,
                expires_at=account.verification_code_expires_at,
            )
        )

    def sweep_expired_codes(self) -> Result[int]:
        return self.sweep_expired()

    @guard_store
    def require_verification(self, account_id: int) -> Result[Account]:
        """Gate for callers that only serve verified accounts."""
        account = self.repository.find_by_id(account_id)
        if account is None:
            return Result.failure(ErrorKind.USER_NOT_FOUND)
        if not account.email_verified:
            return Result.failure(ErrorKind.EMAIL_NOT_VERIFIED)
        return Result.success(account)

    def _consume(self, account: Account, code: str, purpose: CodePurpose) -> Result[Account]:
        if purpose is CodePurpose.VERIFY_EMAIL and account.email_verified:
            return Result.failure(ErrorKind.ALREADY_VERIFIED)

        checked = self.check(account, code, purpose)
        if not checked.ok:
            return checked

        cleared = replace(
            account,
            verification_code=None,
            verification_code_expires_at=None,
            verification_code_purpose=None,
            verification_attempts=0,
        )
        if purpose is CodePurpose.VERIFY_EMAIL:
            self.repository.mark_verified(account.id)
            logger.info("Account %s email verified", account.id)
            return Result.success(replace(cleared, email_verified=True))

        self.repository.clear_verification_code(account.id)
        return Result.success(cleared)
