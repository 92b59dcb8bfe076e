"""
Shared fixtures for integration tests.

PostgreSQL-backed tests skip when the configured database is unreachable.
"""

from collections.abc import Generator

import pytest
from psycopg_pool import ConnectionPool, PoolTimeout

from account_identity.adapters.repository.postgres import run_migrations
from account_identity.config.settings import get_settings


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """Connection pool for the configured database, with migrations applied."""
    settings = get_settings()
    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=10, open=False)
    pool.open()
    try:
        pool.wait(timeout=3.0)
    except PoolTimeout:
        pool.close()
        pytest.skip(f"PostgreSQL not reachable at {settings.database_url}")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_accounts(pg_pool: ConnectionPool) -> Generator[None, None, None]:
    """Empty the accounts table before each test."""
    with pg_pool.connection() as conn:
        conn.execute("DELETE FROM accounts")
        conn.commit()
    yield
