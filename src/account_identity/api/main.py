"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance,
configures exception handlers and lifespan events.
"""

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from account_identity.adapters.repository.memory import InMemoryAccountRepository
from account_identity.adapters.repository.postgres import (
    PostgresAccountRepository,
    run_migrations,
)
from account_identity.api.dependencies import (
    build_email_sender,
    build_ledger,
    build_token_verifier,
)
from account_identity.api.errors import register_error_handlers
from account_identity.api.v1 import router as v1_router
from account_identity.config.settings import get_settings
from account_identity.jobs.cleanup import run_cleanup_loop

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Account identity API v1 - Signup, login, provider resolution, "
        "email verification and password reset",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    Manages application startup and shutdown:
    - Creates the account store (PostgreSQL pool + migrations, or in-memory)
    - Creates the provider ID token verifier
    - Starts the expired-code cleanup job
    - Stops the job and closes the connection pool on shutdown
    """
    settings = get_settings()

    logger.info("Starting application...")

    pool: ConnectionPool | None = None
    if settings.storage_backend == "postgres":
        logger.info("Connecting to database...")
        # Create connection pool with explicit sizing
        pool = ConnectionPool(
            conninfo=settings.database_url,
            min_size=settings.pool_min_size,
            max_size=settings.pool_max_size,
            open=True,
        )

        logger.info("Running database migrations...")
        run_migrations(pool)
        repository = PostgresAccountRepository(pool)
    else:
        logger.warning("Using in-memory account store; data is lost on restart")
        repository = InMemoryAccountRepository()

    # Store handles in app state for dependency injection
    app.state.pool = pool
    app.state.repository = repository
    app.state.token_verifier = build_token_verifier(settings)

    cleanup_task: asyncio.Task | None = None
    if settings.cleanup_interval_seconds > 0:
        ledger = build_ledger(repository, build_email_sender(settings), settings)
        cleanup_task = asyncio.create_task(
            run_cleanup_loop(ledger.sweep_expired_codes, settings.cleanup_interval_seconds)
        )

    logger.info("Application startup complete")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if cleanup_task is not None:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="account-identity",
    description="Account identity and verification service - Resolves credentials and "
    "provider identities to accounts and manages one-time email codes",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

register_error_handlers(app)

# Include v1 API routes
app.include_router(v1_router, prefix="/v1")


@app.get("/health")
def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint with database validation.

    Returns 200 OK if application and database are healthy.
    Raises exception if database connection fails.
    """
    pool = request.app.state.pool
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
