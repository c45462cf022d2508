"""Fixed-window request limiter keyed by client address.

State lives in process memory: it resets on restart and is not shared between
workers. Windows reset lazily on the next request; ``sweep`` drops entries
whose window has already ended.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(
        self,
        *,
        max_requests: int = 100,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max(1, int(max_requests))
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for ``key``; the (N+1)-th request in a window is rejected."""

        now = self._clock()
        window = self._windows.get(key)
        if window is None or now > window.reset_at:
            window = _Window(count=1, reset_at=now + self.window_seconds)
            self._windows[key] = window
            return RateLimitDecision(True, self.max_requests, self.max_requests - 1, window.reset_at)

        if window.count >= self.max_requests:
            return RateLimitDecision(False, self.max_requests, 0, window.reset_at)

        window.count += 1
        return RateLimitDecision(
            True, self.max_requests, self.max_requests - window.count, window.reset_at
        )

    def sweep(self) -> int:
        now = self._clock()
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def clear(self) -> None:
        self._windows.clear()

    def stats(self) -> Dict[str, object]:
        return {
            "entries": len(self._windows),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


__all__ = ["FixedWindowRateLimiter", "RateLimitDecision"]
