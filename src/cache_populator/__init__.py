"""Cache population layer with pluggable stores.

Decouples producing a value from reading it:
- On-demand mode: read-through with populate-on-miss
- Recurring mode: background refresh on a fixed delay or a cron schedule
- In-memory and Redis store adapters

Usage:
    from cache_populator import CacheService, MemoryStore, TimeoutPolicy
    from cache_populator.config import configure_logging_from_settings

    configure_logging_from_settings()

    service = CacheService(MemoryStore())
    user = await service.populate("user:42", fetch_user)

    get_rates = service.schedule("rates", fetch_rates, timeout=TimeoutPolicy(success_delay=60))
    rates = await get_rates()
"""

from cache_populator.errors import (
    AdapterError,
    CachePopulatorError,
    ProducerError,
    StoreUnavailableError,
)
from cache_populator.populator import PopulateIO, TimeoutPolicy, TimingPolicy
from cache_populator.service import CacheService
from cache_populator.store import MemoryStore, RedisStore, StoreAdapter, create_store

__version__ = "0.1.0"

__all__ = [
    "CacheService",
    "PopulateIO",
    "TimeoutPolicy",
    "TimingPolicy",
    "StoreAdapter",
    "MemoryStore",
    "RedisStore",
    "create_store",
    "CachePopulatorError",
    "StoreUnavailableError",
    "AdapterError",
    "ProducerError",
]
