"""Tests for on-demand (read-through) population."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from cache_populator.errors import AdapterError, ProducerError, StoreUnavailableError
from cache_populator.populator.on_demand import PopulateIO
from cache_populator.service import CacheService


class TestPopulate:
    """Tests for populate() in plain mode."""

    def test_cache_hit_skips_producer(self, service, store, producer_factory):
        """A cached value is returned without calling the producer."""
        producer = producer_factory("fresh")

        async def _test():
            await store.set("article:1", "cached")
            return await service.populate("article:1", producer)

        assert asyncio.run(_test()) == "cached"
        assert producer.calls == 0

    def test_cache_miss_invokes_producer_and_stores(self, service, store, producer_factory):
        """A miss runs the producer once and writes its result."""
        producer = producer_factory({"title": "hello"})

        async def _test():
            value = await service.populate("article:1", producer)
            stored = await store.get("article:1")
            return value, stored

        value, stored = asyncio.run(_test())
        assert value == {"title": "hello"}
        assert stored == {"title": "hello"}
        assert producer.calls == 1

    @pytest.mark.parametrize("cached", [0, False, "", []])
    def test_falsy_values_are_cache_hits(self, service, store, producer_factory, cached):
        """Falsy but defined values are served from the cache."""
        producer = producer_factory("fresh")

        async def _test():
            await store.set("counter", cached)
            return await service.populate("counter", producer)

        assert asyncio.run(_test()) == cached
        assert producer.calls == 0

    def test_second_call_reads_populated_value(self, service, producer_factory):
        """Only the first call of a sequence produces."""
        producer = producer_factory("once")

        async def _test():
            first = await service.populate("k", producer)
            second = await service.populate("k", producer)
            return first, second

        assert asyncio.run(_test()) == ("once", "once")
        assert producer.calls == 1

    def test_producer_failure_propagates(self, service, store, producer_factory):
        """A failing producer rejects with ProducerError and nothing is stored."""
        cause = RuntimeError("upstream down")
        producer = producer_factory(cause)

        async def _test():
            with pytest.raises(ProducerError) as exc_info:
                await service.populate("k", producer)
            assert await store.get("k") is None
            return exc_info.value

        error = asyncio.run(_test())
        assert error.cause is cause
        assert error.key == "k"
        assert error.__cause__ is cause

    def test_write_failure_still_returns_value(self, producer_factory):
        """A failed cache write does not fail the caller."""
        store = AsyncMock()
        store.is_available = lambda: True
        store.get.return_value = None
        store.set.side_effect = OSError("disk full")
        service = CacheService(store)
        producer = producer_factory(42)

        assert asyncio.run(service.populate("answer", producer)) == 42
        store.set.assert_awaited_once_with("answer", 42, None)

    def test_write_skipped_when_store_drops_mid_call(self, service, store):
        """The store going away after the read only loses the write."""

        async def producer():
            store.ready = False
            return "value"

        async def _test():
            return await service.populate("k", producer)

        assert asyncio.run(_test()) == "value"
        assert store.stats.writes == 0

    def test_unavailable_store_rejects_without_producing(self, service, store, producer_factory):
        """An unavailable store short-circuits before the producer runs."""
        store.connected = False
        producer = producer_factory("fresh")

        with pytest.raises(StoreUnavailableError):
            asyncio.run(service.populate("k", producer))
        assert producer.calls == 0

    def test_read_error_rejects_without_producing(self, producer_factory):
        """An adapter read failure propagates and the producer is not called."""
        store = AsyncMock()
        store.is_available = lambda: True
        store.get.side_effect = ConnectionResetError("reset")
        service = CacheService(store)
        producer = producer_factory("fresh")

        with pytest.raises(AdapterError) as exc_info:
            asyncio.run(service.populate("k", producer))
        assert exc_info.value.operation == "get"
        assert producer.calls == 0

    def test_ttl_passed_to_store(self, producer_factory):
        """An explicit TTL reaches the store write."""
        store = AsyncMock()
        store.is_available = lambda: True
        store.get.return_value = None
        service = CacheService(store)

        asyncio.run(service.populate("k", producer_factory("v"), ttl=30))
        store.set.assert_awaited_once_with("k", "v", 30)


class TestPopulateIO:
    """Tests for populate() in IO mode."""

    def test_returns_getter_and_updater(self, service, producer_factory):
        """IO mode returns a PopulateIO pair without running anything."""
        producer = producer_factory("v")
        io = service.populate("k", producer, io_mode=True)

        assert isinstance(io, PopulateIO)
        assert callable(io.get)
        assert callable(io.update)
        assert producer.calls == 0

    def test_get_behaves_like_plain_populate(self, service, producer_factory):
        """get() produces on a miss and reads on a hit."""
        producer = producer_factory("v1", "v2")
        io = service.populate("k", producer, io_mode=True)

        async def _test():
            return await io.get(), await io.get()

        assert asyncio.run(_test()) == ("v1", "v1")
        assert producer.calls == 1

    def test_update_bypasses_cache(self, service, store, producer_factory):
        """update() produces and writes even when a value is cached."""
        producer = producer_factory("new")
        io = service.populate("k", producer, io_mode=True)

        async def _test():
            await store.set("k", "old")
            updated = await io.update()
            return updated, await io.get()

        assert asyncio.run(_test()) == ("new", "new")
        assert producer.calls == 1

    def test_update_propagates_producer_error(self, service, store, producer_factory):
        """update() rejects with ProducerError and leaves the old value."""
        producer = producer_factory(ValueError("bad payload"))
        io = service.populate("k", producer, io_mode=True)

        async def _test():
            await store.set("k", "old")
            with pytest.raises(ProducerError):
                await io.update()
            return await store.get("k")

        assert asyncio.run(_test()) == "old"


class TestConcurrentMisses:
    """Tests for concurrent misses on one key."""

    @staticmethod
    def _slow_producer(counter: list):
        async def producer():
            counter.append(1)
            await asyncio.sleep(0.01)
            return "value"

        return producer

    def test_each_miss_produces_by_default(self, store):
        """Without dedupe every concurrent miss runs the producer."""
        service = CacheService(store)
        calls: list = []
        producer = self._slow_producer(calls)

        async def _test():
            return await asyncio.gather(*(service.populate("k", producer) for _ in range(3)))

        assert asyncio.run(_test()) == ["value"] * 3
        assert len(calls) == 3

    def test_dedupe_shares_inflight_call(self, store):
        """With dedupe concurrent misses join a single producer call."""
        service = CacheService(store, dedupe_inflight=True)
        calls: list = []
        producer = self._slow_producer(calls)

        async def _test():
            results = await asyncio.gather(*(service.populate("k", producer) for _ in range(3)))
            return results, service._on_demand.inflight_keys

        results, inflight = asyncio.run(_test())
        assert results == ["value"] * 3
        assert len(calls) == 1
        assert inflight == []

    def test_dedupe_shares_failure(self, store):
        """Joined callers all see the shared producer's failure."""
        service = CacheService(store, dedupe_inflight=True)

        async def producer():
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        async def _test():
            return await asyncio.gather(
                *(service.populate("k", producer) for _ in range(2)),
                return_exceptions=True,
            )

        results = asyncio.run(_test())
        assert all(isinstance(r, ProducerError) for r in results)
