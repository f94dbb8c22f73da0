"""
In-process result cache with status-dependent expiry.

One entry per (kind, key). Match-shaped entries expire according to the
lifecycle status of the match they describe; lists, rosters and lineups use
fixed TTLs. Expired entries are evicted on read or by ``sweep()``.
"""
from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from shared.models.domain import CacheStats
from shared.models.enums import CacheKind, MatchStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_ENTRIES, CACHE_EVICTIONS, CACHE_LOOKUPS

logger = get_logger(__name__)

# ── TTL tables (seconds) ────────────────────────────────────────────────
STATUS_TTL_S: dict[MatchStatus, float] = {
    MatchStatus.COMPLETED: 3600.0,
    MatchStatus.POSTPONED: 3600.0,
    MatchStatus.CANCELLED: 3600.0,
    MatchStatus.IN_PROGRESS: 60.0,
    MatchStatus.HALFTIME: 60.0,
    MatchStatus.PAUSED: 300.0,
    MatchStatus.SUSPENDED: 300.0,
    MatchStatus.UPCOMING: 900.0,
    MatchStatus.UNKNOWN: 300.0,
}

KIND_TTL_S: dict[CacheKind, float] = {
    CacheKind.MATCH_LIST: 300.0,
    CacheKind.ROSTER: 1800.0,
    CacheKind.LINEUP: 1800.0,
    CacheKind.COMPETITIONS: 86400.0,
}


def ttl_for_status(status: Optional[MatchStatus]) -> float:
    """TTL for a match in the given lifecycle state."""
    if status is None:
        return STATUS_TTL_S[MatchStatus.UNKNOWN]
    return STATUS_TTL_S.get(status, STATUS_TTL_S[MatchStatus.UNKNOWN])


def ttl_for_kind(kind: CacheKind, status: Optional[MatchStatus] = None) -> float:
    fixed = KIND_TTL_S.get(kind)
    if fixed is not None:
        return fixed
    return ttl_for_status(status)


@dataclass(frozen=True)
class CacheEntry:
    payload: Any
    stored_at: float
    ttl: float
    status: Optional[MatchStatus] = None

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl


class _ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class ResultCache:
    """
    Keyed TTL store shared by every fetch path.

    ``get`` holds the read lock for the common hit path and upgrades to the
    write lock only when it has to evict, re-checking the entry so a fresh
    ``put`` that raced in is not thrown away.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[tuple[CacheKind, str], CacheEntry] = {}
        self._lock = _ReadWriteLock()

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def put(
        self,
        kind: CacheKind,
        key: str,
        value: Any,
        status: Optional[MatchStatus] = None,
    ) -> None:
        entry = CacheEntry(
            payload=value,
            stored_at=self._clock(),
            ttl=ttl_for_kind(kind, status),
            status=status,
        )
        with self._lock.write():
            self._entries[(kind, key)] = entry
            CACHE_ENTRIES.set(len(self._entries))

    def get(self, kind: CacheKind, key: str, max_age: Optional[float] = None) -> Any:
        """
        Return the cached payload, or None on a miss.

        An expired entry is removed. An entry that is still valid but older
        than ``max_age`` counts as a miss and stays in place.
        """
        cache_key = (kind, key)
        with self._lock.read():
            entry = self._entries.get(cache_key)
            now = self._clock()
            if entry is not None and not entry.is_expired(now):
                if max_age is not None and entry.age(now) > max_age:
                    CACHE_LOOKUPS.labels(kind=kind.value, result="stale").inc()
                    return None
                CACHE_LOOKUPS.labels(kind=kind.value, result="hit").inc()
                return entry.payload

        if entry is not None:
            with self._lock.write():
                current = self._entries.get(cache_key)
                if current is not None and current.is_expired(self._clock()):
                    del self._entries[cache_key]
                    CACHE_EVICTIONS.labels(reason="read").inc()
                    CACHE_ENTRIES.set(len(self._entries))
        CACHE_LOOKUPS.labels(kind=kind.value, result="miss").inc()
        return None

    def invalidate(self, kind: CacheKind, key: str) -> bool:
        with self._lock.write():
            removed = self._entries.pop((kind, key), None) is not None
            CACHE_ENTRIES.set(len(self._entries))
        return removed

    def sweep(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        with self._lock.write():
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for cache_key in expired:
                del self._entries[cache_key]
            CACHE_ENTRIES.set(len(self._entries))
        if expired:
            CACHE_EVICTIONS.labels(reason="sweep").inc(len(expired))
            logger.debug("cache_swept", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()
            CACHE_ENTRIES.set(0)

    def stats(self) -> CacheStats:
        with self._lock.read():
            by_kind: dict[str, int] = {}
            for kind, _ in self._entries:
                by_kind[kind.value] = by_kind.get(kind.value, 0) + 1
            return CacheStats(entries=len(self._entries), by_kind=by_kind)
