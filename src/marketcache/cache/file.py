"""Disk-backed persistent cache tier."""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from marketcache.cache.base import CacheEntry, CacheTier, Clock

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"

# Errors that mean a record exists but can't be trusted
_CORRUPT_ERRORS = (ValueError, KeyError, TypeError)


class FileCache(CacheTier):
    """
    Persistent cache storing one JSON file per entry.

    Survives process restarts. There is no size bound and no LRU; growth is
    limited by TTLs and by ``cleanup()``. File names are content hashes of
    the key, so keys can't be enumerated back out of the directory.

    The tier is an optimization, not a source of truth: read failures
    degrade to misses and write failures are logged and swallowed.
    """

    def __init__(
        self,
        cache_dir: Path | str,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize file cache.

        Args:
            cache_dir: Directory holding the records (created on first use)
            clock: Time source returning epoch seconds
        """
        super().__init__(clock)
        self._cache_dir = Path(cache_dir)
        self._initialized = False

    @property
    def name(self) -> str:
        return "file"

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    def path_for(self, key: str) -> Path:
        """Get the record path for a key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._cache_dir / f"{digest}{RECORD_SUFFIX}"

    def _ensure_dir(self) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)
        if not self._initialized:
            self._initialized = True
            logger.info(f"File cache initialized at {self._cache_dir}")

    # --- blocking helpers, run in a worker thread ---

    def _read_entry(self, path: Path) -> CacheEntry | None:
        """Read and validate one record, deleting it if corrupt or expired."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            entry = CacheEntry.from_record(data)
        except FileNotFoundError:
            return None
        except _CORRUPT_ERRORS as e:
            logger.warning(f"Removing corrupt cache record {path.name}: {e}")
            self._unlink(path)
            return None
        except OSError as e:
            logger.warning(f"Failed to read cache record {path.name}: {e}")
            return None

        if entry.is_expired(self._clock()):
            self._unlink(path)
            return None

        return entry

    def _write_entry(self, path: Path, entry: CacheEntry) -> None:
        """Write a record via temp file + rename so readers never see half a file."""
        self._ensure_dir()
        fd, tmp_name = tempfile.mkstemp(
            dir=self._cache_dir, prefix=".", suffix=TEMP_SUFFIX
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entry.to_record(), f)
            os.replace(tmp_name, path)
        except BaseException:
            self._unlink(Path(tmp_name))
            raise

    @staticmethod
    def _unlink(path: Path) -> bool:
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete cache record {path.name}: {e}")
            return False

    def _iter_records(self) -> list[Path]:
        if not self._cache_dir.exists():
            return []
        return [p for p in self._cache_dir.iterdir() if p.suffix == RECORD_SUFFIX]

    def _clear_sync(self) -> int:
        count = 0
        try:
            for path in self._iter_records():
                if self._unlink(path):
                    count += 1
            for path in self._cache_dir.glob(f"*{TEMP_SUFFIX}"):
                self._unlink(path)
        except OSError as e:
            logger.warning(f"Failed to clear file cache: {e}")
        if count:
            logger.info(f"Cleared {count} file cache entries")
        return count

    def _cleanup_sync(self) -> int:
        cleaned = 0
        try:
            for path in self._iter_records():
                if not path.exists():
                    continue
                if self._read_entry(path) is None and not path.exists():
                    cleaned += 1
        except OSError as e:
            logger.warning(f"File cache cleanup failed: {e}")

        if cleaned:
            logger.debug(f"Cleaned up {cleaned} expired or corrupt file entries")
        return cleaned

    def _stats_sync(self) -> dict[str, Any]:
        count = 0
        total_bytes = 0
        try:
            for path in self._iter_records():
                try:
                    total_bytes += path.stat().st_size
                except FileNotFoundError:
                    continue
                count += 1
        except OSError as e:
            logger.warning(f"Failed to stat file cache: {e}")

        return {
            "count": count,
            "total_bytes": total_bytes,
            "location": str(self._cache_dir),
        }

    # --- async API ---

    async def get_entry(self, key: str) -> CacheEntry | None:
        """Get a live entry; any failure is a miss."""
        return await asyncio.to_thread(self._read_entry, self.path_for(key))

    async def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: float,
        created_at: float | None = None,
    ) -> None:
        """Persist a value. Failures are logged, never raised."""
        now = self._clock()
        entry = CacheEntry(
            value=value,
            expires_at=now + ttl_seconds,
            created_at=created_at if created_at is not None else now,
        )
        try:
            await asyncio.to_thread(self._write_entry, self.path_for(key), entry)
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to persist cache entry {key!r}: {e}")

    async def delete(self, key: str) -> bool:
        """Delete the record for a key."""
        return await asyncio.to_thread(self._unlink, self.path_for(key))

    async def clear(self) -> int:
        """Remove every record in the cache directory."""
        return await asyncio.to_thread(self._clear_sync)

    async def cleanup(self) -> int:
        """Scan all records, deleting expired or corrupt ones."""
        return await asyncio.to_thread(self._cleanup_sync)

    async def stats(self) -> dict[str, Any]:
        """Return record count, total size and location."""
        return await asyncio.to_thread(self._stats_sync)
