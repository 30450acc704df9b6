import asyncio
import logging

import pytest

from fakes import FakeClock
from injlens.services.cache import ResilientCache, track_stale_reads
from injlens.services.errors import MarketNotFoundError, UpstreamUnavailableError


class Producer:
    def __init__(self, value=None, error: Exception | None = None) -> None:
        self.value = value
        self.error = error
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.value


def test_live_entry_is_served_without_running_producer() -> None:
    cache = ResilientCache(clock=FakeClock())
    first = Producer("A")
    second = Producer("B")

    async def scenario():
        miss = await cache.get_or_compute("markets:spot", 60, first)
        hit = await cache.get_or_compute("markets:spot", 60, second)
        return miss, hit

    miss, hit = asyncio.run(scenario())

    assert (miss.data, miss.cached, miss.stale) == ("A", False, False)
    assert (hit.data, hit.cached, hit.stale) == ("A", True, False)
    assert second.calls == 0


def test_expired_entry_recomputes() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)

    asyncio.run(cache.get_or_compute("trades:x:100", 10, Producer(1)))
    clock.advance(10)
    result = asyncio.run(cache.get_or_compute("trades:x:100", 10, Producer(2)))

    assert result.data == 2
    assert result.cached is False


def test_upstream_failure_serves_last_good_and_reseeds_briefly(caplog: pytest.LogCaptureFixture) -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)
    failing = Producer(error=UpstreamUnavailableError("indexer down"))

    asyncio.run(cache.get_or_compute("analytics:overview", 60, Producer("good")))
    clock.advance(61)

    with caplog.at_level(logging.WARNING):
        stale = asyncio.run(cache.get_or_compute("analytics:overview", 60, failing))

    assert (stale.data, stale.cached, stale.stale) == ("good", True, True)
    assert failing.calls == 1
    assert any(getattr(record, "event", "") == "cache_stale_served" for record in caplog.records)

    clock.advance(14)
    asyncio.run(cache.get_or_compute("analytics:overview", 60, failing))
    assert failing.calls == 1

    clock.advance(1)
    asyncio.run(cache.get_or_compute("analytics:overview", 60, failing))
    assert failing.calls == 2


def test_hits_inside_reseed_window_stay_stale() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)
    failing = Producer(error=UpstreamUnavailableError("indexer down"))

    asyncio.run(cache.get_or_compute("markets:spot", 60, Producer("good")))
    clock.advance(61)
    asyncio.run(cache.get_or_compute("markets:spot", 60, failing))
    clock.advance(5)

    async def scenario():
        with track_stale_reads() as reads:
            result = await cache.get_or_compute("markets:spot", 60, failing)
        return result, reads

    hit, reads = asyncio.run(scenario())

    assert (hit.data, hit.cached, hit.stale) == ("good", True, True)
    assert failing.calls == 1
    assert reads == ["markets:spot"]
    assert cache.stats()["stale_hits"] == 2

    clock.advance(10)
    fresh = asyncio.run(cache.get_or_compute("markets:spot", 60, Producer("new")))
    assert (fresh.data, fresh.stale) == ("new", False)
    refreshed = asyncio.run(cache.get_or_compute("markets:spot", 60, failing))
    assert (refreshed.data, refreshed.stale) == ("new", False)


def test_reseed_uses_ttl_when_shorter() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)
    failing = Producer(error=UpstreamUnavailableError("indexer down"))

    asyncio.run(cache.get_or_compute("orderbook:x:25", 10, Producer("book")))
    clock.advance(10)
    asyncio.run(cache.get_or_compute("orderbook:x:25", 10, failing))
    clock.advance(10)
    asyncio.run(cache.get_or_compute("orderbook:x:25", 10, failing))

    assert failing.calls == 2


def test_upstream_failure_without_last_good_propagates() -> None:
    cache = ResilientCache(clock=FakeClock())

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(cache.get_or_compute("health:x", 30, Producer(error=UpstreamUnavailableError("down"))))


def test_not_found_is_never_masked() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)

    asyncio.run(cache.get_or_compute("summary:x", 30, Producer("summary")))
    clock.advance(31)

    with pytest.raises(MarketNotFoundError):
        asyncio.run(cache.get_or_compute("summary:x", 30, Producer(error=MarketNotFoundError("x"))))


def test_stale_reads_are_tracked_across_tasks() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)
    asyncio.run(cache.get_or_compute("a", 10, Producer(1)))
    clock.advance(11)

    async def scenario():
        failing = Producer(error=UpstreamUnavailableError("down"))
        with track_stale_reads() as reads:
            await asyncio.gather(
                cache.get_or_compute("a", 10, failing),
                cache.get_or_compute("b", 10, Producer(2)),
            )
        return reads

    assert asyncio.run(scenario()) == ["a"]


def test_invalidate_clear_and_stats() -> None:
    clock = FakeClock()
    cache = ResilientCache(clock=clock)
    asyncio.run(cache.get_or_compute("a", 10, Producer(1)))
    asyncio.run(cache.get_or_compute("a", 10, Producer(2)))

    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["hit_rate"] == 50.0
    assert stats["keys"] == 1

    cache.invalidate("a")
    assert cache.peek("a") is None
    assert cache.stats()["last_good_keys"] == 1

    cache.clear()
    assert cache.stats()["last_good_keys"] == 0


def test_non_positive_ttl_is_rejected() -> None:
    cache = ResilientCache(clock=FakeClock())

    with pytest.raises(ValueError):
        asyncio.run(cache.get_or_compute("a", 0, Producer(1)))
