"""Process-wide query cache with staleness, retention and single-flight fills.

Entries are keyed by tuples (see ``keys``). A read inside the staleness window
is served from memory; a missing, stale or invalidated entry is refetched under
a per-key lock so concurrent readers share one fetch. Writes go through
``run_mutation`` and then invalidate related families (see ``invalidation``).

The cache is best-effort and single-process. Cached values must be plain JSON
data so the cache can be dehydrated to a persister and restored on startup.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .keys import QueryKey, as_key, matches
from .policy import MUTATION_RETRY, READ_RETRY, QueryPolicy, RetryPolicy, policy_for

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BUSTER = "v1"
DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60.0


@dataclass
class CacheEntry:
    key: QueryKey
    data: Any
    policy: QueryPolicy
    updated_at: float
    last_access: float
    invalidated: bool = False

    def is_stale(self, now: float) -> bool:
        return self.invalidated or (now - self.updated_at) >= self.policy.stale_seconds

    def is_collectable(self, now: float) -> bool:
        return (now - self.last_access) >= self.policy.gc_seconds


class QueryCache:
    def __init__(
        self,
        *,
        persister=None,
        buster: str = DEFAULT_BUSTER,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        read_retry: RetryPolicy = READ_RETRY,
        mutation_retry: RetryPolicy = MUTATION_RETRY,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.persister = persister
        self.buster = buster
        self.max_age_seconds = float(max_age_seconds)
        self.read_retry = read_retry
        self.mutation_retry = mutation_retry
        self._clock = clock
        self._sleep = sleep
        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._locks: Dict[QueryKey, asyncio.Lock] = {}
        self._hits = 0
        self._misses = 0
        self._fetches = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Sequence[Any]) -> bool:
        return as_key(key) in self._entries

    # -- reads -------------------------------------------------------------

    async def fetch_query(
        self,
        key: Sequence[Any],
        fetcher: Callable[[], Awaitable[T]],
        policy: Optional[QueryPolicy] = None,
    ) -> T:
        """Return cached data for ``key`` or run ``fetcher`` and store the result."""

        query_key = as_key(key)
        entry = self._fresh_entry(query_key)
        if entry is not None:
            self._hits += 1
            return entry.data

        lock = self._locks.setdefault(query_key, asyncio.Lock())
        async with lock:
            # Another reader may have filled the entry while we waited.
            entry = self._fresh_entry(query_key)
            if entry is not None:
                self._hits += 1
                return entry.data

            self._misses += 1
            data = await self._run_with_retry(fetcher, self.read_retry, f"query {query_key!r}")
            self._fetches += 1
            self._store(query_key, data, policy)
            return data

    def _fresh_entry(self, key: QueryKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if entry.is_stale(now):
            return None
        entry.last_access = now
        return entry

    def get_query_data(self, key: Sequence[Any]) -> Any:
        entry = self._entries.get(as_key(key))
        return entry.data if entry is not None else None

    def get_queries_data(self, filter_key: Sequence[Any] | str) -> List[Tuple[QueryKey, Any]]:
        return [
            (key, entry.data)
            for key, entry in self._entries.items()
            if matches(filter_key, key)
        ]

    # -- writes ------------------------------------------------------------

    def set_query_data(self, key: Sequence[Any], value: Any) -> Any:
        """Store ``value`` (or ``value(old)`` when callable) as fresh data.

        An updater returning ``None`` leaves the cache untouched.
        """

        query_key = as_key(key)
        if callable(value):
            current = self._entries.get(query_key)
            value = value(current.data if current is not None else None)
            if value is None:
                return None
        self._store(query_key, value, None)
        return value

    def set_queries_data(
        self, filter_key: Sequence[Any] | str, updater: Callable[[Any], Any]
    ) -> List[Tuple[QueryKey, Any]]:
        updated: List[Tuple[QueryKey, Any]] = []
        for key, entry in list(self._entries.items()):
            if not matches(filter_key, key):
                continue
            new_data = updater(entry.data)
            if new_data is None:
                continue
            entry.data = new_data
            entry.updated_at = self._clock()
            updated.append((key, new_data))
        return updated

    def invalidate_queries(self, filter_key: Sequence[Any] | str) -> List[QueryKey]:
        """Mark matching entries invalidated; their next read refetches."""

        touched = [key for key in self._entries if matches(filter_key, key)]
        for key in touched:
            self._entries[key].invalidated = True
        return touched

    def remove_queries(self, filter_key: Sequence[Any] | str) -> int:
        doomed = [key for key in self._entries if matches(filter_key, key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def _store(self, key: QueryKey, data: Any, policy: Optional[QueryPolicy]) -> None:
        now = self._clock()
        previous = self._entries.get(key)
        resolved = policy or (previous.policy if previous is not None else policy_for(key))
        self._entries[key] = CacheEntry(
            key=key,
            data=data,
            policy=resolved,
            updated_at=now,
            last_access=now,
        )

    async def run_mutation(self, mutate: Callable[[], Awaitable[T]]) -> T:
        """Run a write with the mutation retry policy."""

        return await self._run_with_retry(mutate, self.mutation_retry, "mutation")

    async def _run_with_retry(
        self,
        func: Callable[[], Awaitable[T]],
        retry: RetryPolicy,
        label: str,
    ) -> T:
        failures = 0
        while True:
            try:
                return await func()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                failures += 1
                if not retry.should_retry(failures, exc):
                    raise
                delay = retry.delay(failures - 1)
                logger.warning(
                    "%s failed (attempt %d), retrying in %.1fs: %s", label, failures, delay, exc
                )
                await self._sleep(delay)

    # -- maintenance -------------------------------------------------------

    def collect_garbage(self) -> int:
        """Drop entries not read within their retention window."""

        now = self._clock()
        doomed = [key for key, entry in self._entries.items() if entry.is_collectable(now)]
        for key in doomed:
            del self._entries[key]
        for key in [k for k, lock in self._locks.items() if k not in self._entries and not lock.locked()]:
            del self._locks[key]
        if doomed:
            logger.debug("Query cache collected %d entries", len(doomed))
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._locks = {key: lock for key, lock in self._locks.items() if lock.locked()}

    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "invalidated": sum(1 for entry in self._entries.values() if entry.invalidated),
            "hits": self._hits,
            "misses": self._misses,
            "fetches": self._fetches,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # -- persistence -------------------------------------------------------

    def dehydrate(self) -> Dict[str, Any]:
        return {
            "buster": self.buster,
            "timestamp": self._clock(),
            "queries": [
                {
                    "key": list(entry.key),
                    "data": entry.data,
                    "updated_at": entry.updated_at,
                    "invalidated": entry.invalidated,
                }
                for entry in self._entries.values()
            ],
        }

    def hydrate(self, payload: Any) -> int:
        """Load a dehydrated payload; returns the number of restored entries.

        Payloads with a different buster or older than ``max_age_seconds`` are
        discarded. Entries already present in memory are kept.
        """

        if not isinstance(payload, dict):
            return 0
        if payload.get("buster") != self.buster:
            logger.info("Discarding persisted query cache with buster %r", payload.get("buster"))
            return 0
        timestamp = payload.get("timestamp")
        now = self._clock()
        if not isinstance(timestamp, (int, float)) or now - timestamp > self.max_age_seconds:
            logger.info("Discarding expired persisted query cache")
            return 0

        restored = 0
        for item in payload.get("queries") or []:
            try:
                key = tuple(item["key"])
                updated_at = float(item.get("updated_at", timestamp))
            except (KeyError, TypeError, ValueError):
                continue
            if not key or key in self._entries:
                continue
            self._entries[key] = CacheEntry(
                key=key,
                data=item.get("data"),
                policy=policy_for(key),
                updated_at=updated_at,
                last_access=now,
                invalidated=bool(item.get("invalidated", False)),
            )
            restored += 1
        return restored

    async def persist(self) -> bool:
        if self.persister is None:
            return False
        await self.persister.save(self.dehydrate())
        return True

    async def restore(self) -> int:
        if self.persister is None:
            return 0
        payload = await self.persister.load()
        if payload is None:
            return 0
        restored = self.hydrate(payload)
        logger.info("Restored %d query cache entries", restored)
        return restored


__all__ = ["CacheEntry", "QueryCache"]
