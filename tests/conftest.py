"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cache_populator.config.settings import get_settings  # noqa: E402
from cache_populator.service import CacheService  # noqa: E402
from cache_populator.store.memory import MemoryStore  # noqa: E402


@pytest.fixture
def store():
    """Fresh in-memory store."""
    return MemoryStore(max_size=100)


@pytest.fixture
def service(store):
    """Cache service over the in-memory store."""
    return CacheService(store)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class CountingProducer:
    """Async producer that records calls and replays scripted outcomes.

    Each entry in ``outcomes`` is either a value to return or an exception to
    raise; the last entry repeats once the script runs out.
    """

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes) or ["value"]
        self.calls = 0

    async def __call__(self):
        outcome = self.outcomes[min(self.calls, len(self.outcomes) - 1)]
        self.calls += 1
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def producer_factory():
    return CountingProducer
