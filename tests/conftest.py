"""Pytest configuration and fixtures."""

from collections.abc import Generator
from pathlib import Path
import tempfile

import pytest

from marketcache.cache.file import FileCache
from marketcache.cache.manager import CacheManager
from marketcache.cache.memory import MemoryCache
from marketcache.config import Settings

# 2025-01-01T12:00:00Z
START_TIME = 1735732800.0


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        """Stand-in for asyncio.sleep that just moves time forward."""
        self.advance(seconds)


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def temp_cache_dir() -> Generator[Path, None, None]:
    """Create a temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "cache"


@pytest.fixture
def memory(clock: FakeClock) -> MemoryCache:
    """Create a small memory tier."""
    return MemoryCache(max_size=3, clock=clock)


@pytest.fixture
def file_cache(temp_cache_dir: Path, clock: FakeClock) -> FileCache:
    """Create a file tier in a temporary directory."""
    return FileCache(temp_cache_dir, clock=clock)


@pytest.fixture
def manager(memory: MemoryCache, file_cache: FileCache) -> CacheManager:
    """Create a cache manager over both tiers."""
    return CacheManager(memory=memory, file=file_cache)


@pytest.fixture
def settings(temp_cache_dir: Path) -> Settings:
    """Settings pointing at a temporary cache directory."""
    return Settings(
        cache_dir=temp_cache_dir,
        memory_max_size=10,
        tradera_daily_limit=3,
        blocket_max_requests=2,
        blocket_window_seconds=1.0,
        _env_file=None,
    )
