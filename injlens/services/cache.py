"""
Process-lifetime cache with last-known-good fallback.

Two stores share the same namespaced keys:

- **primary**: entries with a per-key TTL;
- **last good**: the most recent successful value per key, never expiring.

``get_or_compute(key, ttl, producer)``:
    1. live primary entry → returned (cached=True); an entry re-seeded from
       last good keeps stale=True until it expires
    2. otherwise the producer runs; success is written to both stores
       (cached=False, stale=False)
    3. if the producer raises ``UpstreamUnavailableError`` and a last good
       value exists, the primary store is re-seeded with
       ``min(ttl, stale_reseed_max_s)`` and that value is returned with
       stale=True; without a last good value the error propagates.

Not-found and invalid-parameter errors are never absorbed. There is no
single-flight: concurrent misses on one key each run their producer.

Key namespace:
    markets:spot, markets:derivative, orderbook:{id}:{depth},
    trades:{id}:{limit}, health:{id}, summary:{id}, analytics:overview,
    analytics:rankings:{metric}:{type|all}:{limit}
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Iterator, TypeVar

from injlens.obs.logging import log_event
from injlens.services.errors import UpstreamUnavailableError

T = TypeVar("T")

DEFAULT_STALE_RESEED_MAX_S = 15.0

_stale_reads: ContextVar[list[str] | None] = ContextVar("injlens_stale_reads", default=None)


@contextmanager
def track_stale_reads() -> Iterator[list[str]]:
    """
    Collect the keys served stale while the block runs.

    Tasks spawned inside the block inherit the same list, so stale reads in
    fanned-out sub-computations are reported too.
    """
    reads: list[str] = []
    token = _stale_reads.set(reads)
    try:
        yield reads
    finally:
        _stale_reads.reset(token)


@dataclass(frozen=True)
class CacheResult(Generic[T]):
    data: T
    cached: bool
    stale: bool = False


@dataclass
class _Entry:
    value: Any
    expires_at: float
    stale: bool = False


class ResilientCache:
    def __init__(
        self,
        *,
        stale_reseed_max_s: float = DEFAULT_STALE_RESEED_MAX_S,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        if stale_reseed_max_s <= 0:
            raise ValueError("stale_reseed_max_s must be positive")
        self._primary: dict[str, _Entry] = {}
        self._last_good: dict[str, Any] = {}
        self._stale_reseed_max_s = stale_reseed_max_s
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._hits = 0
        self._misses = 0
        self._stale_hits = 0

    def _live(self, key: str) -> _Entry | None:
        entry = self._primary.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._primary[key]
            return None
        return entry

    def _set(self, key: str, value: Any, ttl: float, *, stale: bool = False) -> None:
        self._primary[key] = _Entry(value=value, expires_at=self._clock() + ttl, stale=stale)

    def _record_stale_read(self, key: str) -> None:
        self._stale_hits += 1
        reads = _stale_reads.get()
        if reads is not None:
            reads.append(key)

    async def get_or_compute(
        self,
        key: str,
        ttl: float,
        producer: Callable[[], Awaitable[T]],
    ) -> CacheResult[T]:
        if ttl <= 0:
            raise ValueError("ttl must be positive")

        entry = self._live(key)
        if entry is not None:
            self._hits += 1
            if entry.stale:
                self._record_stale_read(key)
            return CacheResult(data=entry.value, cached=True, stale=entry.stale)

        self._misses += 1
        log_event(self._logger, logging.DEBUG, "cache_miss", "Cache miss; computing", key=key, ttl_s=ttl)
        try:
            value = await producer()
        except UpstreamUnavailableError as exc:
            if key not in self._last_good:
                raise
            stale_value = self._last_good[key]
            reseed_ttl = min(ttl, self._stale_reseed_max_s)
            self._set(key, stale_value, reseed_ttl, stale=True)
            self._record_stale_read(key)
            log_event(
                self._logger,
                logging.WARNING,
                "cache_stale_served",
                "Upstream failed; serving last known good value",
                key=key,
                reseed_ttl_s=reseed_ttl,
                error=str(exc),
            )
            return CacheResult(data=stale_value, cached=True, stale=True)

        self._set(key, value, ttl)
        self._last_good[key] = value
        return CacheResult(data=value, cached=False)

    def peek(self, key: str) -> Any | None:
        entry = self._live(key)
        return entry.value if entry is not None else None

    def invalidate(self, key: str, *, drop_last_good: bool = False) -> None:
        self._primary.pop(key, None)
        if drop_last_good:
            self._last_good.pop(key, None)

    def clear(self) -> None:
        self._primary.clear()
        self._last_good.clear()

    def stats(self) -> dict[str, int | float]:
        lookups = self._hits + self._misses
        hit_rate = round(self._hits / lookups * 100, 1) if lookups else 0.0
        live_keys = sum(1 for key in list(self._primary) if self._live(key) is not None)
        return {
            "keys": live_keys,
            "last_good_keys": len(self._last_good),
            "hits": self._hits,
            "misses": self._misses,
            "stale_hits": self._stale_hits,
            "hit_rate": hit_rate,
        }
