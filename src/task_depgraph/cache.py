"""Single-flight result cache for read-style graph queries.

ResultCache memoizes the result of a computation per caller-supplied key.
While a computation for a key is in flight, later callers for the same key
await the same future instead of starting another computation.  Failed
computations are never cached.

Usage:
    cache = ResultCache(ttl_seconds=30, max_entries=256)
    report = await cache.get_or_execute(f"{root}::validate", compute)
    cache.invalidate_prefix(f"{root}::")   # after a mutation
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A stored result and its freshness information."""

    value: T
    created_at: float
    stale: bool = False

    def is_fresh(self, now: float, ttl_seconds: float | None) -> bool:
        if self.stale:
            return False
        if ttl_seconds is None:
            return True
        return now - self.created_at < ttl_seconds


@dataclass
class CacheStats:
    """Hit/miss telemetry for a ResultCache."""

    hits: int = 0
    misses: int = 0
    coalesced: int = 0  # callers that joined an in-flight computation
    failures: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses + self.coalesced
        if lookups == 0:
            return 0.0
        return (self.hits + self.coalesced) / lookups

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "failures": self.failures,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": round(self.hit_rate, 4),
        }


class ResultCache:
    """Per-key memoization with at most one in-flight computation per key.

    Instances are independent; construct one per scope that should share
    results and pass it to whoever needs it.

    Attributes:
        ttl_seconds: Entry lifetime, or None for no expiry.
        max_entries: LRU bound on stored entries, or None for unbounded.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float | None = None,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds is not None and ttl_seconds <= 0:
            msg = f"ttl_seconds must be positive, got {ttl_seconds}"
            raise ValueError(msg)
        if max_entries is not None and max_entries < 1:
            msg = f"max_entries must be at least 1, got {max_entries}"
            raise ValueError(msg)

        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry[Any]] = OrderedDict()
        self._inflight: dict[str, asyncio.Future[Any]] = {}
        self._stats = CacheStats()

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and entry.is_fresh(self._clock(), self.ttl_seconds)

    def __len__(self) -> int:
        return len(self._entries)

    async def get_or_execute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T] | T],
    ) -> T:
        """Return the cached result for *key*, computing it at most once.

        Args:
            key: Cache key, unique per logical query.
            compute: Zero-argument callable; may be sync or return an
                awaitable.

        Returns:
            The cached or freshly computed result.

        Raises:
            Exception: Whatever *compute* raised.  Every caller waiting on
                the same key receives the same exception, and the key stays
                uncached.
        """
        entry = self._entries.get(key)
        if entry is not None:
            if entry.is_fresh(self._clock(), self.ttl_seconds):
                self._entries.move_to_end(key)
                self._stats.hits += 1
                logger.debug("Cache hit: %s", key)
                return entry.value
            del self._entries[key]

        pending = self._inflight.get(key)
        if pending is not None:
            self._stats.coalesced += 1
            logger.debug("Joining in-flight computation: %s", key)
            # Shielded so a cancelled waiter leaves the shared computation running.
            return await asyncio.shield(pending)

        self._stats.misses += 1
        logger.debug("Cache miss: %s", key)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            result = compute()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._stats.failures += 1
            future.set_exception(exc)
            # Mark retrieved so an unawaited failure is not reported by asyncio.
            future.exception()
            raise
        except BaseException:
            # Cancellation, KeyboardInterrupt, SystemExit: waiters see CancelledError.
            future.cancel()
            raise
        finally:
            self._inflight.pop(key, None)

        self._store(key, result)
        future.set_result(result)
        return result

    def _store(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, created_at=self._clock())
        self._entries.move_to_end(key)
        if self.max_entries is not None:
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug("Evicted cache entry: %s", evicted)

    def invalidate(self, key: str) -> bool:
        """Drop the entry for *key*.  Returns True if one was stored."""
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with *prefix*.  Returns the count."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        if keys:
            logger.debug("Invalidated %d cache entries with prefix %s", len(keys), prefix)
        return len(keys)

    def mark_stale(self, key: str) -> None:
        """Keep the entry for *key* but force the next lookup to recompute."""
        entry = self._entries.get(key)
        if entry is not None:
            entry.stale = True

    def clear(self) -> None:
        """Drop all stored entries.  In-flight computations are unaffected."""
        self._entries.clear()

    def reset(self) -> None:
        """Drop all entries and zero the statistics."""
        self.clear()
        self._stats = CacheStats()

    def stats(self) -> CacheStats:
        """Return a snapshot of the cache statistics."""
        return CacheStats(
            hits=self._stats.hits,
            misses=self._stats.misses,
            coalesced=self._stats.coalesced,
            failures=self._stats.failures,
            evictions=self._stats.evictions,
            size=len(self._entries),
        )
