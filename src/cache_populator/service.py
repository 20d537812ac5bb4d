"""Cache service: availability-gated store access plus both population modes."""

from __future__ import annotations

from typing import Any

from cache_populator.config.settings import Settings, get_settings
from cache_populator.errors import AdapterError, StoreUnavailableError
from cache_populator.populator.on_demand import OnDemandPopulator, Producer
from cache_populator.populator.policies import TimeoutPolicy, TimingPolicy
from cache_populator.populator.recurring import Getter, RecurringPopulator
from cache_populator.store.base import StoreAdapter
from cache_populator.store.factory import create_store


class CacheService:
    """Populates and reads cached values through one shared store adapter.

    The service never connects or closes the adapter it is given.

    Args:
        store: Store adapter shared by both populators
        default_ttl: TTL in seconds used when a write does not name one
        dedupe_inflight: Share one producer call among concurrent misses
        timezone: Timezone for cron refresh schedules

    Example:
        service = CacheService(MemoryStore())
        value = await service.populate("article:1", load_article)
        get_weather = service.schedule(
            "weather",
            fetch_weather,
            timing=TimingPolicy(error_delay=5, schedule="*/10 * * * *"),
        )
        weather = await get_weather()
    """

    def __init__(
        self,
        store: StoreAdapter,
        default_ttl: int | None = None,
        dedupe_inflight: bool = False,
        timezone: str = "UTC",
    ):
        self.store = store
        self.default_ttl = default_ttl
        self._on_demand = OnDemandPopulator(self, dedupe=dedupe_inflight)
        self._recurring = RecurringPopulator(self, timezone=timezone)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CacheService:
        """Build a service around the store selected by configuration."""
        settings = settings or get_settings()
        return cls(
            create_store(settings),
            default_ttl=settings.default_ttl,
            dedupe_inflight=settings.dedupe_inflight,
            timezone=settings.scheduler_timezone,
        )

    def is_available(self) -> bool:
        """Whether the store client is connected and ready, checked fresh."""
        return self.store.is_available()

    async def get(self, key: str) -> Any | None:
        """Read ``key`` from the store.

        Raises:
            StoreUnavailableError: The store is not ready; no I/O was attempted
            AdapterError: The adapter failed the read
        """
        if not self.is_available():
            raise StoreUnavailableError(key=key)
        try:
            return await self.store.get(key)
        except Exception as e:
            raise AdapterError(
                f"Cache read for {key!r} failed: {e}", key=key, operation="get", cause=e
            ) from e

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Write ``value`` under ``key``.

        Raises:
            StoreUnavailableError: The store is not ready; no I/O was attempted
            AdapterError: The adapter failed the write
        """
        if not self.is_available():
            raise StoreUnavailableError(key=key)
        ttl = ttl if ttl is not None else self.default_ttl
        try:
            await self.store.set(key, value, ttl)
        except Exception as e:
            raise AdapterError(
                f"Cache write for {key!r} failed: {e}", key=key, operation="set", cause=e
            ) from e

    def populate(
        self,
        key: str,
        producer: Producer,
        io_mode: bool = False,
        ttl: int | None = None,
    ):
        """Read-through population; see ``OnDemandPopulator.populate``."""
        return self._on_demand.populate(key, producer, io_mode=io_mode, ttl=ttl)

    def schedule(
        self,
        key: str,
        producer: Producer,
        timeout: TimeoutPolicy | None = None,
        timing: TimingPolicy | None = None,
        ttl: int | None = None,
    ) -> Getter:
        """Recurring population; see ``RecurringPopulator.schedule``."""
        return self._recurring.schedule(key, producer, timeout=timeout, timing=timing, ttl=ttl)

    async def cancel(self, key: str) -> bool:
        """Stop recurring refresh of ``key``."""
        return await self._recurring.cancel(key)

    async def shutdown(self) -> None:
        """Stop all recurring refresh work. The store is left open."""
        await self._recurring.shutdown()

    def jobs(self) -> list[dict]:
        """Summaries of the recurring refresh entries."""
        return self._recurring.jobs()

    @property
    def recurring(self) -> RecurringPopulator:
        """The recurring populator, for direct access to its scheduler."""
        return self._recurring

