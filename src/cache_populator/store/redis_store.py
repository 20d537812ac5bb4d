"""Redis store adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

from cache_populator.store.base import StoreAdapter
from cache_populator.utils.redaction import redact_url

logger = logging.getLogger(__name__)


def _is_connection_error(exc: Exception) -> bool:
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import TimeoutError as RedisTimeoutError

    return isinstance(exc, (RedisConnectionError, RedisTimeoutError, ConnectionError))


class RedisStore(StoreAdapter):
    """Redis-backed store for distributed deployments.

    Requires redis package: pip install redis

    The adapter counts as available once ``connect()`` has received a PING
    reply, and drops back to unavailable as soon as a command fails with a
    connection error. Call ``connect()`` again to recover.

    Args:
        url: Redis URL (default: redis://localhost:6379/0)
        prefix: Key prefix for namespacing (default: "cache:")
        default_ttl: Default TTL in seconds (default: None = no expiration)
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        prefix: str = "cache:",
        default_ttl: int | None = None,
    ):
        self._url = url
        self._prefix = prefix
        self._default_ttl = default_ttl
        self._client = None
        self._ready = False

    def _get_client(self):
        """Lazy-load async Redis client."""
        if self._client is None:
            try:
                import redis.asyncio as aioredis

                self._client = aioredis.from_url(self._url)
            except ImportError:
                raise ImportError("Redis package not installed. Install with: pip install redis")
        return self._client

    def _make_key(self, key: str) -> str:
        """Add prefix to key."""
        return f"{self._prefix}{key}"

    async def connect(self) -> bool:
        """Open the connection and mark the adapter ready on a PING reply."""
        client = self._get_client()
        try:
            self._ready = bool(await client.ping())
        except Exception as e:
            if not _is_connection_error(e):
                raise
            self._ready = False
            logger.warning("Redis at %s is unreachable: %s", redact_url(self._url), e)
        return self._ready

    def is_available(self) -> bool:
        return self._client is not None and self._ready

    async def get(self, key: str) -> Any | None:
        """Get value from Redis."""
        client = self._get_client()
        try:
            data = await client.get(self._make_key(key))
        except Exception as e:
            self._mark_unready(e)
            raise
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError:
            return data.decode() if isinstance(data, bytes) else data

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set value in Redis."""
        client = self._get_client()
        ttl = ttl if ttl is not None else self._default_ttl
        data = json.dumps(value)

        try:
            if ttl:
                await client.setex(self._make_key(key), ttl, data)
            else:
                await client.set(self._make_key(key), data)
        except Exception as e:
            self._mark_unready(e)
            raise

    async def close(self) -> None:
        """Close the client connection pool."""
        self._ready = False
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _mark_unready(self, exc: Exception) -> None:
        if _is_connection_error(exc):
            self._ready = False
            logger.warning("Lost connection to Redis at %s: %s", redact_url(self._url), exc)
