"""
In-memory repository adapter - Implements AccountRepository protocol.

Keeps accounts in a dict guarded by a single lock. Enforces the same
uniqueness constraints as the PostgreSQL schema (email, provider pair) so
insert races behave identically. Intended for development and tests.
"""

import itertools
import threading
from dataclasses import replace
from datetime import datetime, timezone

from account_identity.domain.exceptions import StoreError, UniqueViolation
from account_identity.domain.ports import Account, CodePurpose


class InMemoryAccountRepository:
    """
    Implements AccountRepository protocol over a process-local dict.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Every method holds the lock for its whole read-modify-write, matching
    the single-statement atomicity of the SQL adapter.
    """

    def __init__(self) -> None:
        self._accounts: dict[int, Account] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> Account | None:
        with self._lock:
            return next((a for a in self._accounts.values() if a.email == email), None)

    def find_by_provider(self, provider: str, provider_id: str) -> Account | None:
        with self._lock:
            return next(
                (
                    a
                    for a in self._accounts.values()
                    if a.provider == provider and a.provider_id == provider_id
                ),
                None,
            )

    def find_by_id(self, account_id: int) -> Account | None:
        with self._lock:
            return self._accounts.get(account_id)

    def insert_local(
        self,
        email: str,
        password_digest: str,
        first_name: str | None,
        last_name: str | None,
    ) -> Account:
        with self._lock:
            self._check_unique(email)
            return self._insert(
                email=email,
                password_digest=password_digest,
                first_name=first_name,
                last_name=last_name,
                email_verified=False,
            )

    def insert_social(
        self,
        provider: str,
        provider_id: str,
        email: str,
        first_name: str | None,
        last_name: str | None,
        avatar_url: str | None,
    ) -> Account:
        with self._lock:
            self._check_unique(email, provider, provider_id)
            return self._insert(
                email=email,
                first_name=first_name,
                last_name=last_name,
                avatar_url=avatar_url,
                email_verified=True,
                provider=provider,
                provider_id=provider_id,
            )

    def set_verification_code(
        self,
        account_id: int,
        code: str,
        expires_at: datetime,
        purpose: CodePurpose,
        sent_at: datetime,
    ) -> None:
        self._update(
            account_id,
            verification_code=code,
            verification_code_expires_at=expires_at,
            verification_code_purpose=purpose,
            verification_attempts=0,
            verification_sent_at=sent_at,
        )

    def record_failed_attempt(self, account_id: int, code: str, max_attempts: int) -> int:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None or account.verification_code != code:
                return 0
            attempts = account.verification_attempts + 1
            fields = dict(_CLEARED_CODE) if attempts >= max_attempts else {}
            fields["verification_attempts"] = attempts
            self._accounts[account_id] = replace(account, updated_at=_now(), **fields)
            return attempts

    def clear_verification_code(self, account_id: int) -> None:
        self._update(account_id, **_CLEARED_CODE)

    def mark_verified(self, account_id: int) -> None:
        self._update(account_id, email_verified=True, **_CLEARED_CODE)

    def link_provider(
        self, account_id: int, provider: str, provider_id: str, avatar_url: str | None
    ) -> Account:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is None:
                raise StoreError(f"account {account_id} not found")
            for other in self._accounts.values():
                if other.id != account_id and (other.provider, other.provider_id) == (
                    provider,
                    provider_id,
                ):
                    raise UniqueViolation(f"{provider}:{provider_id}")
            linked = replace(
                account,
                provider=provider,
                provider_id=provider_id,
                avatar_url=account.avatar_url or avatar_url,
                email_verified=True,
                updated_at=_now(),
            )
            self._accounts[account_id] = linked
            return linked

    def set_password_digest(self, account_id: int, digest: str) -> None:
        self._update(account_id, password_digest=digest)

    def sweep_expired_codes(self, now: datetime) -> int:
        with self._lock:
            expired = [
                a
                for a in self._accounts.values()
                if a.verification_code_expires_at is not None
                and a.verification_code_expires_at < now
            ]
            for account in expired:
                self._accounts[account.id] = replace(account, updated_at=_now(), **_CLEARED_CODE)
            return len(expired)

    def _check_unique(
        self, email: str, provider: str | None = None, provider_id: str | None = None
    ) -> None:
        for account in self._accounts.values():
            if account.email == email:
                raise UniqueViolation(email)
            if provider is not None and (account.provider, account.provider_id) == (
                provider,
                provider_id,
            ):
                raise UniqueViolation(f"{provider}:{provider_id}")

    def _insert(self, **fields) -> Account:
        now = _now()
        account = Account(id=next(self._ids), created_at=now, updated_at=now, **fields)
        self._accounts[account.id] = account
        return account

    def _update(self, account_id: int, **fields) -> None:
        with self._lock:
            account = self._accounts.get(account_id)
            if account is not None:
                self._accounts[account_id] = replace(account, updated_at=_now(), **fields)


_CLEARED_CODE = {
    "verification_code": None,
    "verification_code_expires_at": None,
    "verification_code_purpose": None,
    "verification_attempts": 0,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)
