"""
Pytest configuration and fixtures for request cache tests.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest

from rcache.cache.lru import LRUStore
from rcache.cache.storage import MemoryStorage
from rcache.config import Settings, clear_settings_cache
from rcache.request.cache import RequestCache

# Tuesday 2026-03-10 12:00 local time
START_MS = round(datetime(2026, 3, 10, 12, 0, 0).timestamp() * 1000)


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock starting at noon."""
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    """Provide a roomy in-memory medium."""
    return MemoryStorage(capacity=1024 * 1024)


@pytest.fixture
def store(storage: MemoryStorage, clock: FakeClock) -> LRUStore:
    """Provide an LRU store over the in-memory medium."""
    return LRUStore(storage, clock=clock)


@pytest.fixture
def request_cache(store: LRUStore, clock: FakeClock) -> RequestCache:
    """Provide a request cache with a one-day grace period."""
    return RequestCache(store, grace_period_ms=24 * 60 * 60 * 1000, clock=clock)


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide RCACHE_* environment variables for testing."""
    env_vars = {
        "RCACHE_DISABLE_CACHE": "false",
        "RCACHE_SHOW_LOG": "true",
        "RCACHE_MAX_RETRIES": "5",
        "RCACHE_EVICT_BATCH_SIZE": "2",
        "RCACHE_GRACE_PERIOD_MS": "60000",
        "RCACHE_CAPACITY_BYTES": "65536",
        "RCACHE_DB_PATH": str(temp_dir / "cache" / "rcache.db"),
        "RCACHE_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    from rcache.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def cache_log(caplog: pytest.LogCaptureFixture) -> Generator[pytest.LogCaptureFixture, None, None]:
    """Capture records from the rcache logger, which does not propagate."""
    logger = logging.getLogger("rcache")
    logger.addHandler(caplog.handler)
    yield caplog
    logger.removeHandler(caplog.handler)
