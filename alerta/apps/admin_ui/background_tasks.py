"""Background tasks for the admin UI.

Periodic maintenance running for the lifetime of the application:
- Query cache garbage collection every minute and a full cleanup every hour
- Expired rate-limit window sweep
"""

import asyncio
import logging
import time
from typing import Callable

from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.perf.limits.rate_limiter import FixedWindowRateLimiter
from alerta.core.error_handler import resilient_task

logger = logging.getLogger(__name__)

CACHE_GC_INTERVAL_SECONDS = 60.0
CACHE_CLEANUP_INTERVAL_SECONDS = 60 * 60.0


def run_cache_maintenance(
    cache: QueryCache,
    *,
    last_cleanup: float,
    now: float,
    cleanup_interval: float = CACHE_CLEANUP_INTERVAL_SECONDS,
) -> float:
    """Run one maintenance pass; returns the time of the last full cleanup."""
    if now - last_cleanup >= cleanup_interval:
        dropped = len(cache)
        cache.clear()
        logger.info("Query cache cleared (%d entries)", dropped)
        return now
    cache.collect_garbage()
    return last_cleanup


@resilient_task(task_name="query_cache_maintenance", retry_delay=30.0)
async def periodic_cache_maintenance(
    cache: QueryCache,
    interval_seconds: float = CACHE_GC_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    logger.info("Starting query cache maintenance (interval: %.0fs)", interval_seconds)
    last_cleanup = clock()
    while True:
        await asyncio.sleep(interval_seconds)
        last_cleanup = run_cache_maintenance(cache, last_cleanup=last_cleanup, now=clock())


@resilient_task(task_name="rate_limit_sweeper", retry_delay=30.0)
async def periodic_rate_limit_sweep(
    limiter: FixedWindowRateLimiter,
    interval_seconds: float = 60.0,
) -> None:
    logger.info("Starting rate limit sweeper (interval: %.0fs)", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        removed = limiter.sweep()
        if removed:
            logger.debug("Swept %d expired rate limit windows", removed)


__all__ = [
    "periodic_cache_maintenance",
    "periodic_rate_limit_sweep",
    "run_cache_maintenance",
]
