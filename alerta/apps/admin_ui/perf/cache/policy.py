"""Staleness, retention and retry policies for the query cache.

Centralized here so router code stays consistent and easy to tune.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional

from .keys import (
    APP_SETTINGS,
    DASHBOARD_STATS,
    DESERTION_TREND,
    INCIDENTS,
    SECTIONS,
    STUDENTS,
    TEACHER_DATA,
    USER_PROFILE,
    QueryKey,
)

MINUTE = 60.0
HOUR = 60 * MINUTE


@dataclass(frozen=True)
class QueryPolicy:
    """Cache policy for a query family.

    Attributes:
        stale_seconds: Reads younger than this are served without a refetch.
        gc_seconds: Entries not read for this long are garbage collected.
    """

    stale_seconds: float
    gc_seconds: float


DEFAULT_POLICY = QueryPolicy(stale_seconds=5 * MINUTE, gc_seconds=15 * MINUTE)

QUERY_POLICIES: Dict[QueryKey, QueryPolicy] = {
    (STUDENTS, "paginated"): QueryPolicy(stale_seconds=3 * MINUTE, gc_seconds=10 * MINUTE),
    (DASHBOARD_STATS,): QueryPolicy(stale_seconds=5 * MINUTE, gc_seconds=15 * MINUTE),
    (INCIDENTS, "recent"): QueryPolicy(stale_seconds=2 * MINUTE, gc_seconds=8 * MINUTE),
    (DESERTION_TREND,): QueryPolicy(stale_seconds=24 * HOUR, gc_seconds=48 * HOUR),
    (SECTIONS,): QueryPolicy(stale_seconds=30 * MINUTE, gc_seconds=60 * MINUTE),
    (TEACHER_DATA,): QueryPolicy(stale_seconds=10 * MINUTE, gc_seconds=20 * MINUTE),
    (USER_PROFILE,): QueryPolicy(stale_seconds=10 * MINUTE, gc_seconds=15 * MINUTE),
    (APP_SETTINGS,): QueryPolicy(stale_seconds=30 * MINUTE, gc_seconds=60 * MINUTE),
}


def policy_for(key: QueryKey) -> QueryPolicy:
    """Return the policy of the longest declared prefix of ``key``."""

    for size in range(len(key), 0, -1):
        policy = QUERY_POLICIES.get(key[:size])
        if policy is not None:
            return policy
    return DEFAULT_POLICY


def error_status(exc: BaseException) -> Optional[int]:
    if isinstance(exc, ValueError):
        # Input validation failures surface as 422.
        return 422
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def is_client_error(exc: BaseException) -> bool:
    status = error_status(exc)
    return status is not None and 400 <= status < 500


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential: bool = True
    retry_client_errors: bool = False

    def should_retry(self, failure_count: int, exc: BaseException) -> bool:
        """``failure_count`` is the number of attempts that already failed."""

        if not self.retry_client_errors and is_client_error(exc):
            return False
        return failure_count <= self.max_retries

    def delay(self, attempt_index: int) -> float:
        if not self.exponential:
            return self.base_delay
        return min(self.base_delay * 2 ** attempt_index, self.max_delay)


READ_RETRY = RetryPolicy(max_retries=2, base_delay=1.0, max_delay=30.0)
MUTATION_RETRY = RetryPolicy(max_retries=1, base_delay=1.0, exponential=False)


__all__ = [
    "DEFAULT_POLICY",
    "MUTATION_RETRY",
    "QUERY_POLICIES",
    "QueryPolicy",
    "READ_RETRY",
    "RetryPolicy",
    "error_status",
    "is_client_error",
    "policy_for",
]
