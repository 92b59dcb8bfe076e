"""
PostgreSQL repository adapter - Implements AccountRepository protocol.

This module provides the PostgreSQL implementation of the domain's
repository port using psycopg3 with raw SQL.

Atomicity Design:
-----------------
Every method is a single SQL statement, so each one is atomic on its own
and touches at most one row (the sweep excepted). No cross-row transaction
is ever needed.

1. **Inserts**: The UNIQUE constraints on ``email`` and
   ``(provider, provider_id)`` are the authoritative guard against
   concurrent signups/resolutions. A violation is raised to the domain as
   ``UniqueViolation`` so it can fall back to a fresh lookup.

2. **Code updates**: code, expiry and purpose are written or cleared
   together in one UPDATE; a CHECK constraint rejects any partial triple.
   A failed guess increments ``verification_attempts`` and, at the limit,
   clears the triple in the same UPDATE, so concurrent guesses cannot
   overshoot the limit.

3. **Provider linking**: ``COALESCE`` keeps an existing avatar, and
   ``email_verified`` is forced in the same statement.

Any other psycopg error is raised as ``StoreError``.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from account_identity.domain.exceptions import StoreError, UniqueViolation
from account_identity.domain.ports import Account, CodePurpose

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, email, password_digest, first_name, last_name, avatar_url, email_verified,
    verification_code, verification_code_expires_at, verification_code_purpose,
    verification_attempts, verification_sent_at, provider, provider_id, created_at, updated_at
"""


@contextmanager
def _store_errors() -> Iterator[None]:
    """Translate psycopg errors into domain exceptions."""
    try:
        yield
    except pg_errors.UniqueViolation as e:
        raise UniqueViolation(e.diag.constraint_name or str(e)) from e
    except psycopg.Error as e:
        logger.error("Account store error: %s", e)
        raise StoreError(str(e)) from e


def _to_account(row: dict[str, Any]) -> Account:
    purpose = row["verification_code_purpose"]
    return Account(
        id=row["id"],
        email=row["email"],
        password_digest=row["password_digest"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        avatar_url=row["avatar_url"],
        email_verified=row["email_verified"],
        verification_code=row["verification_code"],
        verification_code_expires_at=row["verification_code_expires_at"],
        verification_code_purpose=CodePurpose(purpose) if purpose is not None else None,
        verification_attempts=row["verification_attempts"],
        verification_sent_at=row["verification_sent_at"],
        provider=row["provider"],
        provider_id=row["provider_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresAccountRepository:
    """
    Implements AccountRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_email(self, email: str) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE email = %s", (email,))

    def find_by_provider(self, provider: str, provider_id: str) -> Account | None:
        sql = f"SELECT {_COLUMNS} FROM accounts WHERE provider = %s AND provider_id = %s"
        return self._fetch_one(sql, (provider, provider_id))

    def find_by_id(self, account_id: int) -> Account | None:
        return self._fetch_one(f"SELECT {_COLUMNS} FROM accounts WHERE id = %s", (account_id,))

    def insert_local(
        self,
        email: str,
        password_digest: str,
        first_name: str | None,
        last_name: str | None,
    ) -> Account:
        sql = f"""
            INSERT INTO accounts (email, password_digest, first_name, last_name, email_verified)
            VALUES (%s, %s, %s, %s, FALSE)
            RETURNING {_COLUMNS}
        """
        return self._fetch_one(sql, (email, password_digest, first_name, last_name))

    def insert_social(
        self,
        provider: str,
        provider_id: str,
        email: str,
        first_name: str | None,
        last_name: str | None,
        avatar_url: str | None,
    ) -> Account:
        sql = f"""
            INSERT INTO accounts
                (email, first_name, last_name, avatar_url, email_verified, provider, provider_id)
            VALUES (%s, %s, %s, %s, TRUE, %s, %s)
            RETURNING {_COLUMNS}
        """
        return self._fetch_one(
            sql, (email, first_name, last_name, avatar_url, provider, provider_id)
        )

    def set_verification_code(
        self,
        account_id: int,
        code: str,
        expires_at: datetime,
        purpose: CodePurpose,
        sent_at: datetime,
    ) -> None:
        sql = """
            UPDATE accounts
            SET verification_code = %s,
                verification_code_expires_at = %s,
                verification_code_purpose = %s,
                verification_attempts = 0,
                verification_sent_at = %s,
                updated_at = NOW()
            WHERE id = %s
        """
        self._execute(sql, (code, expires_at, purpose.value, sent_at, account_id))

    def record_failed_attempt(self, account_id: int, code: str, max_attempts: int) -> int:
        # Right-hand sides see the pre-update row.
        sql = """
            UPDATE accounts
            SET verification_attempts = verification_attempts + 1,
                verification_code = CASE
                    WHEN verification_attempts + 1 >= %(max)s THEN NULL
                    ELSE verification_code END,
                verification_code_expires_at = CASE
                    WHEN verification_attempts + 1 >= %(max)s THEN NULL
                    ELSE verification_code_expires_at END,
                verification_code_purpose = CASE
                    WHEN verification_attempts + 1 >= %(max)s THEN NULL
                    ELSE verification_code_purpose END,
                updated_at = NOW()
            WHERE id = %(id)s AND verification_code = %(code)s
            RETURNING verification_attempts
        """
        with _store_errors(), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, {"max": max_attempts, "id": account_id, "code": code})
            row = cursor.fetchone()
            conn.commit()
        return row[0] if row is not None else 0

    def clear_verification_code(self, account_id: int) -> None:
        sql = """
            UPDATE accounts
            SET verification_code = NULL,
                verification_code_expires_at = NULL,
                verification_code_purpose = NULL,
                verification_attempts = 0,
                updated_at = NOW()
            WHERE id = %s
        """
        self._execute(sql, (account_id,))

    def mark_verified(self, account_id: int) -> None:
        sql = """
            UPDATE accounts
            SET email_verified = TRUE,
                verification_code = NULL,
                verification_code_expires_at = NULL,
                verification_code_purpose = NULL,
                verification_attempts = 0,
                updated_at = NOW()
            WHERE id = %s
        """
        self._execute(sql, (account_id,))

    def link_provider(
        self, account_id: int, provider: str, provider_id: str, avatar_url: str | None
    ) -> Account:
        sql = f"""
            UPDATE accounts
            SET provider = %s,
                provider_id = %s,
                avatar_url = COALESCE(avatar_url, %s),
                email_verified = TRUE,
                updated_at = NOW()
            WHERE id = %s
            RETURNING {_COLUMNS}
        """
        account = self._fetch_one(sql, (provider, provider_id, avatar_url, account_id))
        if account is None:
            raise StoreError(f"account {account_id} not found")
        return account

    def set_password_digest(self, account_id: int, digest: str) -> None:
        sql = "UPDATE accounts SET password_digest = %s, updated_at = NOW() WHERE id = %s"
        self._execute(sql, (digest, account_id))

    def sweep_expired_codes(self, now: datetime) -> int:
        sql = """
            UPDATE accounts
            SET verification_code = NULL,
                verification_code_expires_at = NULL,
                verification_code_purpose = NULL,
                verification_attempts = 0,
                updated_at = NOW()
            WHERE verification_code_expires_at < %s
        """
        return self._execute(sql, (now,))

    def _fetch_one(self, sql: str, params: tuple) -> Account | None:
        with (
            _store_errors(),
            self._pool.connection() as conn,
            conn.cursor(row_factory=dict_row) as cursor,
        ):
            cursor.execute(sql, params)
            row = cursor.fetchone()
            conn.commit()
        return _to_account(row) if row is not None else None

    def _execute(self, sql: str, params: tuple) -> int:
        with _store_errors(), self._pool.connection() as conn, conn.cursor() as cursor:
            cursor.execute(sql, params)
            conn.commit()
            return cursor.rowcount


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: account_identity/adapters/repository/postgres.py -> account_identity/migrations/
    migrations_dir = Path(__file__).parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except Exception as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
