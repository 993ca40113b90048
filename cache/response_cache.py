"""
Response Cache
--------------
Bounded in-memory cache for upstream responses.

Design:
- TTL fixed per instance, checked lazily on read (no background sweep)
- Eviction only when a NEW key enters a full cache
- Victim = lowest access count, ties broken by oldest last access
- One lock around every read-then-write, eviction scan included

Instances are constructed explicitly and injected; different call sites may
hold caches with different TTLs.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Hashable, Iterable, Optional
import logging
import threading
import time

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_SIZE = 50

# Returned by get() on a miss when the caller must tell a miss from a cached None
MISSING = object()


@dataclass
class CacheEntry:
    """A stored value plus its usage metadata."""
    value: Any
    stored_at: float
    access_count: int = 1
    last_accessed_at: float = 0.0
    tags: FrozenSet[str] = frozenset()


@dataclass
class CacheStats:
    """Snapshot of cache usage."""
    total_items: int = 0
    valid_items: int = 0
    expired_items: int = 0
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0


class ResponseCache:
    """
    TTL-aware cache with LFU-primary / LRU-tiebreak eviction.

    Example:
        cache = ResponseCache(ttl_seconds=120, max_size=50, name="live")
        cache.set("api_GET_https://api.pandascore.co/matches/running_", body)
        cache.get("api_GET_https://api.pandascore.co/matches/running_")
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_size: int = DEFAULT_MAX_SIZE,
        clock: Callable[[], float] = time.monotonic,
        name: str = "default",
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")

        self.ttl_seconds = float(ttl_seconds)
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._logger = logging.getLogger(f"emob.cache.{name}")

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at > self.ttl_seconds

    def get(self, key: Hashable, default: Any = None) -> Optional[Any]:
        """
        Return the cached value, or ``default`` when absent or expired.

        A hit bumps the entry's access count and last-access time,
        which makes it more likely to survive eviction.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return default

            now = self._clock()
            if self._is_expired(entry, now):
                del self._entries[key]
                self._stats.misses += 1
                self._stats.expirations += 1
                self._logger.debug(f"Expired: {key}")
                return default

            entry.access_count += 1
            entry.last_accessed_at = now
            self._stats.hits += 1
            return entry.value

    def set(self, key: Hashable, value: Any, tags: Iterable[str] = ()) -> None:
        """
        Store a value.

        Overwriting resets the entry as a single fresh access. Inserting a
        new key into a full cache evicts exactly one entry first.
        """
        with self._lock:
            now = self._clock()
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_one()

            self._entries[key] = CacheEntry(
                value=value,
                stored_at=now,
                access_count=1,
                last_accessed_at=now,
                tags=frozenset(tags),
            )

    def _evict_one(self) -> None:
        """Remove the least used entry. Caller holds the lock."""
        victim_key = None
        victim: Optional[CacheEntry] = None

        for key, entry in self._entries.items():
            if (
                victim is None
                or entry.access_count < victim.access_count
                or (
                    entry.access_count == victim.access_count
                    and entry.last_accessed_at < victim.last_accessed_at
                )
            ):
                victim_key, victim = key, entry

        if victim is not None:
            del self._entries[victim_key]
            self._stats.evictions += 1
            self._logger.debug(
                f"Evicted: {victim_key} (access_count={victim.access_count})"
            )

    def has(self, key: Hashable) -> bool:
        """Check for a live entry without counting it as an access."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if self._is_expired(entry, self._clock()):
                del self._entries[key]
                self._stats.expirations += 1
                return False
            return True

    def delete(self, key: Hashable) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_tag(self, tag: str) -> int:
        """Remove every entry stored with ``tag``. Returns the number removed."""
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if tag in entry.tags]
            for key in doomed:
                del self._entries[key]
        if doomed:
            self._logger.info(f"Invalidated {len(doomed)} entries tagged '{tag}'")
        return len(doomed)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        """Entry count, including stale entries not yet read."""
        with self._lock:
            return len(self._entries)

    def __len__(self) -> int:
        return self.size()

    def get_stats(self) -> CacheStats:
        with self._lock:
            now = self._clock()
            expired = sum(1 for e in self._entries.values() if self._is_expired(e, now))
            return CacheStats(
                total_items=len(self._entries),
                valid_items=len(self._entries) - expired,
                expired_items=expired,
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                expirations=self._stats.expirations,
            )

    async def get_or_fetch(
        self,
        key: Hashable,
        fetcher: Callable[[], Awaitable[Any]],
        tags: Iterable[str] = (),
    ) -> Any:
        """
        Return the cached value or await ``fetcher`` and store its result.

        Concurrent misses for one key each call ``fetcher``; there is no
        request coalescing.
        """
        cached = self.get(key, MISSING)
        if cached is not MISSING:
            return cached

        try:
            value = await fetcher()
        except Exception:
            self._logger.error(f"Failed to fetch data for key {key}")
            raise

        self.set(key, value, tags=tags)
        return value
