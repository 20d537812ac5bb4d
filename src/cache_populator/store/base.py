"""Store adapter contract consumed by the populators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StoreAdapter(ABC):
    """Abstract base class for key/value stores with TTL support.

    Adapters do not gate their own calls on availability; the service checks
    ``is_available()`` before delegating.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Return True only if the connection is both connected and ready."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Get value from the store, None when absent."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set value in the store with optional TTL in seconds."""
        pass

    async def close(self) -> None:
        """Release connections held by the adapter."""
        return None
