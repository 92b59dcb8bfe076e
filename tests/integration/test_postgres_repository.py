"""
Integration tests for PostgresAccountRepository.

Tests repository operations against a real PostgreSQL database.
Requires PostgreSQL to be running (via docker-compose).
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from psycopg import errors as pg_errors
from psycopg_pool import ConnectionPool

from account_identity.adapters.repository.postgres import PostgresAccountRepository
from account_identity.domain.exceptions import StoreError, UniqueViolation
from account_identity.domain.ports import CodePurpose

pytestmark = [pytest.mark.integration, pytest.mark.usefixtures("clean_accounts")]

NOW = datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def repository(pg_pool: ConnectionPool) -> PostgresAccountRepository:
    return PostgresAccountRepository(pg_pool)


class TestInsert:
    """Tests for insert_local / insert_social."""

    def test_insert_local_returns_account(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "$2b$10$hash", "Ada", None)

        assert account.id > 0
        assert account.email == "a@example.com"
        assert not account.email_verified
        assert account.created_at is not None
        assert repository.find_by_id(account.id) == account

    def test_insert_social_is_verified(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_social("google", "g-1", "a@example.com", "A", "B", "https://img")

        assert account.email_verified
        assert account.password_digest is None
        assert repository.find_by_provider("google", "g-1").id == account.id

    def test_duplicate_email_raises_unique_violation(
        self, repository: PostgresAccountRepository
    ) -> None:
        repository.insert_local("dup@example.com", "h", None, None)

        with pytest.raises(UniqueViolation, match="accounts_email_key"):
            repository.insert_local("dup@example.com", "h", None, None)

    def test_duplicate_provider_raises_unique_violation(
        self, repository: PostgresAccountRepository
    ) -> None:
        repository.insert_social("google", "g-1", "a@example.com", None, None, None)

        with pytest.raises(UniqueViolation, match="accounts_provider_key"):
            repository.insert_social("google", "g-1", "b@example.com", None, None, None)

    def test_concurrent_inserts_single_winner(self, repository: PostgresAccountRepository) -> None:
        """The UNIQUE constraint admits exactly one of many concurrent inserts."""

        def attempt(i: int) -> bool:
            try:
                repository.insert_local("race@example.com", f"h{i}", None, None)
            except UniqueViolation:
                return False
            return True

        with ThreadPoolExecutor(max_workers=10) as executor:
            results = list(executor.map(attempt, range(10)))

        assert results.count(True) == 1


class TestCodeFields:
    """Tests for the verification code triple."""

    def test_set_and_read_back(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "h", None, None)
        expires = NOW + timedelta(minutes=10)

        repository.set_verification_code(account.id, "1234", expires, CodePurpose.RESET_PASSWORD, NOW)

        stored = repository.find_by_id(account.id)
        assert stored.verification_code == "1234"
        assert stored.verification_code_expires_at == expires
        assert stored.verification_code_purpose is CodePurpose.RESET_PASSWORD

    def test_clear(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "h", None, None)
        repository.set_verification_code(account.id, "1234", NOW, CodePurpose.VERIFY_EMAIL, NOW)

        repository.clear_verification_code(account.id)

        stored = repository.find_by_id(account.id)
        assert stored.verification_code is None
        assert stored.verification_code_expires_at is None
        assert stored.verification_code_purpose is None

    def test_mark_verified_clears_code(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "h", None, None)
        repository.set_verification_code(account.id, "1234", NOW, CodePurpose.VERIFY_EMAIL, NOW)

        repository.mark_verified(account.id)

        stored = repository.find_by_id(account.id)
        assert stored.email_verified
        assert not stored.has_pending_code

    def test_sweep_expired_codes(self, repository: PostgresAccountRepository) -> None:
        expired = repository.insert_local("old@example.com", "h", None, None)
        live = repository.insert_local("new@example.com", "h", None, None)
        repository.set_verification_code(
            expired.id, "1111", NOW - timedelta(minutes=1), CodePurpose.VERIFY_EMAIL, NOW
        )
        repository.set_verification_code(
            live.id, "2222", NOW + timedelta(minutes=5), CodePurpose.VERIFY_EMAIL, NOW
        )

        assert repository.sweep_expired_codes(NOW) == 1

        assert not repository.find_by_id(expired.id).has_pending_code
        assert repository.find_by_id(live.id).has_pending_code


class TestRecordFailedAttempt:
    """Tests for the single-statement attempt counter."""

    @pytest.fixture
    def pending(self, repository: PostgresAccountRepository):
        account = repository.insert_local("a@example.com", "h", None, None)
        expires = NOW + timedelta(minutes=10)
        repository.set_verification_code(account.id, "1234", expires, CodePurpose.VERIFY_EMAIL, NOW)
        return account

    def test_counts_and_clears_at_limit(self, repository: PostgresAccountRepository, pending) -> None:
        assert repository.record_failed_attempt(pending.id, "1234", 3) == 1
        assert repository.record_failed_attempt(pending.id, "1234", 3) == 2
        assert repository.find_by_id(pending.id).has_pending_code

        assert repository.record_failed_attempt(pending.id, "1234", 3) == 3

        stored = repository.find_by_id(pending.id)
        assert not stored.has_pending_code
        assert stored.verification_sent_at == NOW

    def test_replaced_code_not_counted(self, repository: PostgresAccountRepository, pending) -> None:
        repository.set_verification_code(pending.id, "5678", NOW, CodePurpose.VERIFY_EMAIL, NOW)

        assert repository.record_failed_attempt(pending.id, "1234", 3) == 0
        assert repository.find_by_id(pending.id).verification_attempts == 0

    def test_concurrent_failures_stop_at_limit(
        self, repository: PostgresAccountRepository, pending
    ) -> None:
        with ThreadPoolExecutor(max_workers=10) as pool:
            counts = list(
                pool.map(lambda _: repository.record_failed_attempt(pending.id, "1234", 3), range(10))
            )

        assert sorted(c for c in counts if c) == [1, 2, 3]
        assert not repository.find_by_id(pending.id).has_pending_code


class TestLinkProvider:
    """Tests for link_provider()."""

    def test_link_sets_provider_and_verifies(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "h", None, None)

        linked = repository.link_provider(account.id, "google", "g-1", "https://img")

        assert linked.provider == "google"
        assert linked.provider_id == "g-1"
        assert linked.email_verified
        assert linked.avatar_url == "https://img"
        assert linked.password_digest == "h"

    def test_link_keeps_existing_avatar(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_social("linkedin", "l-1", "a@example.com", None, None, "https://old")

        linked = repository.link_provider(account.id, "google", "g-1", "https://new")

        assert linked.avatar_url == "https://old"

    def test_link_missing_account(self, repository: PostgresAccountRepository) -> None:
        with pytest.raises(StoreError):
            repository.link_provider(999999, "google", "g-1", None)


class TestSetPasswordDigest:
    """Tests for set_password_digest()."""

    def test_replaces_digest(self, repository: PostgresAccountRepository) -> None:
        account = repository.insert_local("a@example.com", "old", None, None)

        repository.set_password_digest(account.id, "new")

        assert repository.find_by_id(account.id).password_digest == "new"


class TestSchemaConstraints:
    """Tests for CHECK constraints in the migration."""

    def test_partial_code_triple_rejected(
        self, repository: PostgresAccountRepository, pg_pool: ConnectionPool
    ) -> None:
        account = repository.insert_local("a@example.com", "h", None, None)

        with pytest.raises(pg_errors.CheckViolation), pg_pool.connection() as conn:
            conn.execute(
                "UPDATE accounts SET verification_code = '1234' WHERE id = %s", (account.id,)
            )
