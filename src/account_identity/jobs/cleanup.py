"""
Expired-code cleanup job.

Runs the verification ledger sweep on a fixed interval from the FastAPI
lifespan. The sweep is storage hygiene only; expiry is enforced live at
validation time, so a missed or failed run never affects correctness.
"""

import asyncio
import logging
from collections.abc import Callable

from account_identity.domain.results import Result

logger = logging.getLogger(__name__)


async def run_cleanup_loop(sweep: Callable[[], Result[int]], interval_seconds: float) -> None:
    """
    Call ``sweep`` every ``interval_seconds`` until cancelled.

    The sweep is blocking (database I/O) and runs in a worker thread.
    """
    while True:
        await asyncio.sleep(interval_seconds)
        logger.info("Running verification code cleanup job...")
        try:
            result = await asyncio.to_thread(sweep)
        except Exception:
            logger.exception("Cleanup job failed")
            continue
        if result.ok:
            logger.info("Cleanup completed. Removed %d expired codes.", result.value)
        else:
            logger.warning("Cleanup job failed: %s", result.error.value)
