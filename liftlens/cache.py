"""In-memory memoization for expensive analytics, keyed by name and checked by data fingerprint."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TypeVar

from .models import WorkoutSet

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TTL_MS = 10 * 60 * 1000
DEFAULT_MAX_ENTRIES = 50


@dataclass
class _Entry:
    value: Any
    fingerprint: str
    expires_at: float  # clock seconds


@dataclass
class _KeyLock:
    lock: threading.Lock
    users: int = 0


class ComputationCache:
    """
    Memoizes results by key. A stored value is reused only while its fingerprint matches the
    caller's and its TTL has not elapsed; otherwise it is recomputed and replaced. Concurrent
    callers for one key share a single computation.
    """

    def __init__(
        self,
        default_ttl_ms: int = DEFAULT_TTL_MS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max(1, max_entries)
        self._clock = clock
        self._entries: dict[str, _Entry] = {}  # insertion order is age order
        self._key_locks: dict[str, _KeyLock] = {}  # only keys with a caller inside get_or_compute
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def _lookup(self, key: str, fingerprint: str) -> tuple[bool, Any]:
        # caller holds self._lock
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return False, None
        if entry.fingerprint != fingerprint:
            return False, None
        return True, entry.value

    def get(self, key: str, fingerprint: str) -> Optional[Any]:
        with self._lock:
            found, value = self._lookup(key, fingerprint)
        return value if found else None

    def get_or_compute(
        self,
        key: str,
        fingerprint: str,
        compute: Callable[[], T],
        ttl_ms: Optional[int] = None,
    ) -> T:
        with self._lock:
            found, value = self._lookup(key, fingerprint)
            if found:
                self.hits += 1
                logger.debug("cache hit key=%s", key)
                return value
            key_lock = self._key_locks.get(key)
            if key_lock is None:
                key_lock = self._key_locks[key] = _KeyLock(threading.Lock())
            key_lock.users += 1

        try:
            return self._compute_locked(key, fingerprint, compute, ttl_ms, key_lock.lock)
        finally:
            with self._lock:
                key_lock.users -= 1
                if key_lock.users == 0 and self._key_locks.get(key) is key_lock:
                    del self._key_locks[key]

    def _compute_locked(
        self,
        key: str,
        fingerprint: str,
        compute: Callable[[], T],
        ttl_ms: Optional[int],
        key_lock: threading.Lock,
    ) -> T:
        with key_lock:
            # another caller may have finished while we waited
            with self._lock:
                found, value = self._lookup(key, fingerprint)
                if found:
                    self.hits += 1
                    logger.debug("cache hit key=%s (after wait)", key)
                    return value
                self.misses += 1
            logger.debug("cache miss key=%s", key)
            value = compute()
            ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
            with self._lock:
                self._entries.pop(key, None)
                self._entries[key] = _Entry(value, fingerprint, self._clock() + ttl / 1000.0)
                while len(self._entries) > self.max_entries:
                    oldest = next(iter(self._entries))
                    del self._entries[oldest]
                    logger.debug("cache evict key=%s", oldest)
            return value

    def invalidate(self, prefix: str = "") -> int:
        """Drop entries whose key starts with prefix (all when empty). Returns the count dropped."""
        with self._lock:
            doomed = [k for k in self._entries if k.startswith(prefix)]
            for k in doomed:
                del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "hits": self.hits,
                "misses": self.misses,
                "size": len(self._entries),
                "in_flight": len(self._key_locks),
            }


def fingerprint_sets(sets: Iterable[WorkoutSet], **filters: Any) -> str:
    """Cheap identity for a set list: length, first/last timestamps, plus sorted filter values."""
    items = list(sets)
    if items:
        head = f"{len(items)}:{items[0].start_time.isoformat()}:{items[-1].start_time.isoformat()}"
    else:
        head = "0::"
    extra = ",".join(f"{k}={filters[k]}" for k in sorted(filters) if filters[k] is not None)
    return f"{head}|{extra}"


def filtered_cache_key(
    base: str,
    month: Optional[str] = None,
    day: Optional[str] = None,
    range: Optional[str] = None,
    weeks: Optional[int] = None,
) -> str:
    """Namespaced key such as `muscle_volume:month=2025-01:range=all`."""
    parts = [base]
    for name, value in (("month", month), ("day", day), ("range", range), ("weeks", weeks)):
        if value is not None:
            parts.append(f"{name}={value}")
    return ":".join(parts)
