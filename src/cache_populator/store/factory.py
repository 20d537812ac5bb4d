"""Store selection from settings."""

from __future__ import annotations

import importlib.util
import logging

from cache_populator.config.settings import Settings, get_settings
from cache_populator.store.base import StoreAdapter
from cache_populator.store.memory import MemoryStore
from cache_populator.store.redis_store import RedisStore
from cache_populator.utils.redaction import redact_url

logger = logging.getLogger(__name__)


def create_store(settings: Settings | None = None) -> StoreAdapter:
    """Create a store adapter based on configuration.

    - If redis_url is set and redis is installed, uses RedisStore
    - Otherwise, uses MemoryStore

    A RedisStore still needs ``await store.connect()`` before it reports
    itself available.
    """
    settings = settings or get_settings()

    if settings.redis_url:
        if importlib.util.find_spec("redis") is not None:
            logger.info("Using Redis store at %s", redact_url(settings.redis_url))
            return RedisStore(
                url=settings.redis_url,
                prefix=settings.key_prefix,
                default_ttl=settings.default_ttl,
            )
        logger.warning(
            "redis_url set but redis package not installed. Falling back to memory store."
        )

    logger.debug("Using in-memory store")
    return MemoryStore(max_size=settings.memory_max_size, default_ttl=settings.default_ttl)
