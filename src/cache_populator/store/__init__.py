"""Store adapters.

Provides:
- StoreAdapter: the contract the populators consume
- MemoryStore: in-process store with TTL (no external dependencies)
- RedisStore: Redis-backed store for distributed deployments
- create_store: picks an adapter from settings
"""

from cache_populator.store.base import StoreAdapter
from cache_populator.store.factory import create_store
from cache_populator.store.memory import MemoryStore, StoreEntry, StoreStats
from cache_populator.store.redis_store import RedisStore

__all__ = [
    "StoreAdapter",
    "MemoryStore",
    "RedisStore",
    "StoreEntry",
    "StoreStats",
    "create_store",
]
