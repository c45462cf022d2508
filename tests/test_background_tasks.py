import asyncio

import pytest

from alerta.apps.admin_ui.background_tasks import (
    periodic_rate_limit_sweep,
    run_cache_maintenance,
)
from alerta.apps.admin_ui.perf.cache.query_cache import QueryCache
from alerta.apps.admin_ui.perf.limits.rate_limiter import FixedWindowRateLimiter
from alerta.core.error_handler import GracefulShutdown, resilient_task

pytestmark = pytest.mark.no_db_cleanup


class _Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_maintenance_collects_garbage_between_cleanups():
    clock = _Clock()
    cache = QueryCache(clock=clock)
    cache.set_query_data(("misc", "old"), 1)
    clock.now += 20 * 60
    cache.set_query_data(("misc", "new"), 2)

    last = run_cache_maintenance(cache, last_cleanup=0.0, now=60.0)

    assert last == 0.0
    assert ("misc", "old") not in cache
    assert ("misc", "new") in cache


def test_maintenance_clears_everything_once_an_hour():
    cache = QueryCache(clock=_Clock())
    cache.set_query_data(("misc", "a"), 1)
    cache.set_query_data(("misc", "b"), 2)

    last = run_cache_maintenance(cache, last_cleanup=0.0, now=3600.0)

    assert last == 3600.0
    assert len(cache) == 0


async def test_rate_limit_sweep_removes_expired_windows():
    clock = _Clock()
    limiter = FixedWindowRateLimiter(max_requests=5, window_seconds=60, clock=clock)
    limiter.check("10.0.0.1")
    clock.now += 61

    task = asyncio.create_task(periodic_rate_limit_sweep(limiter, interval_seconds=0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(limiter) == 0


async def test_resilient_task_restarts_after_errors():
    calls = []

    @resilient_task(task_name="flaky", retry_delay=0)
    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise RuntimeError("boom")
        return "done"

    assert await flaky() == "done"
    assert len(calls) == 3


async def test_resilient_task_gives_up_after_max_retries():
    @resilient_task(task_name="broken", retry_delay=0, max_retries=2)
    async def broken():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await broken()


async def test_graceful_shutdown_cancels_tracked_tasks():
    manager = GracefulShutdown(timeout=1.0)
    task = asyncio.create_task(asyncio.sleep(3600))
    manager.add_task(task)

    await manager.shutdown()

    assert task.cancelled()
    assert manager.tasks == []
