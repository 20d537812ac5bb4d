"""On-demand (read-through) population.

A read checks the store first; on a miss the producer runs once, its result
is written back and returned. In IO mode the caller gets a ``get``/``update``
pair instead, where ``update`` forces a refresh without waiting for a miss.

Usage:
    populator = OnDemandPopulator(service)

    value = await populator.populate("user:42", fetch_user)

    io = populator.populate("user:42", fetch_user, io_mode=True)
    value = await io.get()
    fresh = await io.update()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, NamedTuple

from cache_populator.errors import CachePopulatorError, ProducerError

if TYPE_CHECKING:
    from cache_populator.service import CacheService

logger = logging.getLogger(__name__)

Producer = Callable[[], Awaitable[Any]]


class PopulateIO(NamedTuple):
    """Getter and updater bound to one key and producer."""

    get: Callable[[], Awaitable[Any]]
    update: Callable[[], Awaitable[Any]]


class OnDemandPopulator:
    """Serves cached values and populates the store on a miss.

    Concurrent misses for the same key each invoke the producer unless
    ``dedupe`` is enabled, in which case they share the in-flight call.

    Args:
        service: Availability-gated store access
        dedupe: Join concurrent misses for one key onto a single producer call
    """

    def __init__(self, service: CacheService, dedupe: bool = False):
        self._service = service
        self._dedupe = dedupe
        self._inflight: dict[str, asyncio.Future] = {}

    def populate(
        self,
        key: str,
        producer: Producer,
        io_mode: bool = False,
        ttl: int | None = None,
    ) -> Awaitable[Any] | PopulateIO:
        """Read ``key`` through the cache, producing it on a miss.

        Returns an awaitable resolving to the value, or a ``PopulateIO`` pair
        when ``io_mode`` is set.
        """
        if io_mode:
            return PopulateIO(
                get=lambda: self._read_through(key, producer, ttl),
                update=lambda: self._produce(key, producer, ttl),
            )
        return self._read_through(key, producer, ttl)

    async def _read_through(self, key: str, producer: Producer, ttl: int | None) -> Any:
        value = await self._service.get(key)
        if value is not None:
            logger.debug("Cache hit: %s", key)
            return value

        logger.debug("Cache miss: %s", key)
        if self._dedupe:
            return await self._join_or_produce(key, producer, ttl)
        return await self._produce(key, producer, ttl)

    async def _produce(self, key: str, producer: Producer, ttl: int | None) -> Any:
        """Run the producer and write its result; a lost write is only logged."""
        try:
            value = await producer()
        except Exception as e:
            raise ProducerError(f"Producer for {key!r} failed: {e}", key=key, cause=e) from e

        try:
            await self._service.set(key, value, ttl)
        except CachePopulatorError as e:
            logger.warning(
                "Cache write for %s failed, serving produced value uncached: %s",
                key,
                e,
                extra={"cache_key": key, "operation": "set"},
            )
        return value

    async def _join_or_produce(self, key: str, producer: Producer, ttl: int | None) -> Any:
        pending = self._inflight.get(key)
        if pending is not None:
            logger.debug("Joining in-flight producer call for %s", key)
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._produce(key, producer, ttl))
        self._inflight[key] = task

        def _release(done: asyncio.Future) -> None:
            if self._inflight.get(key) is done:
                del self._inflight[key]

        task.add_done_callback(_release)
        return await asyncio.shield(task)

    @property
    def inflight_keys(self) -> list[str]:
        """Keys with a shared producer call currently running."""
        return list(self._inflight)
