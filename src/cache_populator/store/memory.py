"""In-memory store adapter."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from cache_populator.store.base import StoreAdapter


@dataclass
class StoreEntry:
    """A single stored value with expiration."""

    value: Any
    expires_at: float | None = None  # Unix timestamp, None = no expiration

    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


@dataclass
class StoreStats:
    """Store read statistics."""

    hits: int = 0
    misses: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate hit rate percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0


class MemoryStore(StoreAdapter):
    """In-memory store with TTL support.

    Suitable for single-process deployments and tests. Expired entries are
    dropped lazily on access and swept every ``cleanup_interval`` operations.
    The ``connected`` and ``ready`` flags model a client connection so callers
    can exercise the unavailable path.

    Args:
        max_size: Maximum number of entries (default 1000)
        default_ttl: Default TTL in seconds (default None = no expiration)
        cleanup_interval: Cleanup expired entries every N operations (default 100)
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: int | None = None,
        cleanup_interval: int = 100,
    ):
        self._entries: dict[str, StoreEntry] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._cleanup_interval = cleanup_interval
        self._operation_count = 0
        self._stats = StoreStats()
        self.connected = True
        self.ready = True

    def is_available(self) -> bool:
        return self.connected and self.ready

    async def get(self, key: str) -> Any | None:
        """Get value from the store."""
        self._maybe_cleanup()

        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        if entry.is_expired():
            del self._entries[key]
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        return entry.value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set value in the store."""
        self._maybe_cleanup()

        ttl = ttl if ttl is not None else self._default_ttl
        expires_at = time.time() + ttl if ttl else None

        # Evict oldest if at capacity
        if len(self._entries) >= self._max_size and key not in self._entries:
            self._evict_oldest()

        self._entries[key] = StoreEntry(value=value, expires_at=expires_at)
        self._stats.writes += 1

    async def close(self) -> None:
        self.connected = False
        self.ready = False

    def _maybe_cleanup(self) -> None:
        self._operation_count += 1
        if self._operation_count >= self._cleanup_interval:
            self._operation_count = 0
            self._cleanup_expired()

    def _cleanup_expired(self) -> None:
        expired_keys = [k for k, v in self._entries.items() if v.is_expired()]
        for key in expired_keys:
            del self._entries[key]

    def _evict_oldest(self) -> None:
        """Evict oldest entry (FIFO)."""
        if self._entries:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]

    @property
    def stats(self) -> StoreStats:
        """Get store statistics."""
        return self._stats

    @property
    def size(self) -> int:
        """Current number of entries."""
        return len(self._entries)
