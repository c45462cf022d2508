"""Process-level error handling for background work."""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def setup_global_exception_handler() -> None:
    """Log exceptions escaping fire-and-forget asyncio tasks."""

    def handle_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exception = context.get("exception")
        message = context.get("message", "Unhandled exception in async task")
        if exception is not None:
            logger.error("Asyncio exception handler caught: %s", message, exc_info=exception)
        else:
            logger.error("Asyncio exception handler caught: %s (context: %s)", message, context)

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running loop to install exception handler yet")
        return
    loop.set_exception_handler(handle_exception)
    logger.info("Global asyncio exception handler installed")


def resilient_task(
    *,
    task_name: str,
    retry_on_error: bool = True,
    retry_delay: float = 5.0,
    max_retries: Optional[int] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Keep a long-running coroutine alive across unexpected errors.

    Cancellation always propagates. Any other exception is logged and, unless
    ``retry_on_error`` is off or ``max_retries`` is exhausted, the coroutine is
    restarted after ``retry_delay`` seconds.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            while True:
                try:
                    return await func(*args, **kwargs)
                except asyncio.CancelledError:
                    logger.info("%s cancelled, shutting down", task_name)
                    raise
                except Exception as exc:
                    attempt += 1
                    logger.error(
                        "%s failed (attempt %d): %s", task_name, attempt, exc, exc_info=True
                    )
                    if not retry_on_error or (max_retries and attempt >= max_retries):
                        logger.critical(
                            "%s permanently failed after %d attempts", task_name, attempt
                        )
                        raise
                    logger.warning("%s will retry in %.1fs", task_name, retry_delay)
                    await asyncio.sleep(retry_delay)

        return wrapper

    return decorator


class GracefulShutdown:
    """Cancel tracked background tasks and wait for them within a deadline."""

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self.tasks: list[asyncio.Task] = []

    def add_task(self, task: asyncio.Task) -> None:
        self.tasks.append(task)

    async def shutdown(self) -> None:
        if not self.tasks:
            return

        logger.info("Shutting down %d background tasks", len(self.tasks))
        for task in self.tasks:
            if not task.done():
                task.cancel()

        try:
            await asyncio.wait_for(
                asyncio.gather(*self.tasks, return_exceptions=True),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            pending = [task.get_name() for task in self.tasks if not task.done()]
            logger.warning(
                "Background tasks still running after %.1fs: %s", self.timeout, pending
            )
        self.tasks.clear()


__all__ = ["GracefulShutdown", "resilient_task", "setup_global_exception_handler"]
