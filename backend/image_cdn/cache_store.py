"""
Image Cache Store

Flat, content-addressed file cache for transformed renditions:
- One file per cache key, no metadata index
- File presence is the only validity signal; mtime drives eviction
- Atomic writes (temp file + rename) so readers never see partial entries
- Blocking file I/O runs in worker threads to keep the event loop free
"""

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .errors import StorageFailure
from .path_guard import PathGuard

logger = logging.getLogger(__name__)

TEMP_PREFIX = "."
TEMP_MARKER = ".tmp."


@dataclass
class CacheEntryInfo:
    """Directory listing record for one cache file."""
    key: str
    path: Path
    size_bytes: int
    modified_at: float

    @property
    def is_partial(self) -> bool:
        return self.key.startswith(TEMP_PREFIX) and TEMP_MARKER in self.key

    def age_seconds(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.modified_at


class ImageCacheStore:
    """
    Filesystem-backed store of cached image bytes.

    Cache structure:
    cache_dir/
    ├── 3f1c...9a.jpg
    ├── 77d0...e1.jpg
    └── .77d0...e1.jpg.tmp.<uuid>   (in-flight write, never served)
    """

    def __init__(self, cache_dir: Path, guard: Optional[PathGuard] = None):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.guard = guard or PathGuard(self.cache_dir)
        logger.info(f"[CacheStore] Cache directory: {self.cache_dir}")

    def path_for(self, key: str) -> Path:
        """Safe absolute path for a key (raises AccessDenied on traversal)."""
        return self.guard.resolve(key)

    async def exists(self, key: str) -> bool:
        """True iff a cache file named ``key`` is present."""
        path = self.path_for(key)
        return await asyncio.to_thread(path.is_file)

    async def read(self, key: str) -> Optional[bytes]:
        """
        Read cached bytes.

        Returns:
            The file contents, or None on a miss (including a file that
            vanished between lookup and read, e.g. evicted mid-request).

        Raises:
            StorageFailure: on any other I/O error.
        """
        path = self.path_for(key)
        if key.startswith(TEMP_PREFIX):
            # In-flight writes are never served
            return None
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            logger.debug(f"[CacheStore] Miss: {key}")
            return None
        except IsADirectoryError:
            return None
        except OSError as e:
            logger.error(f"[CacheStore] Failed to read {key}: {e}")
            raise StorageFailure(f"Failed to read cache entry: {key}") from e

        logger.debug(f"[CacheStore] Hit: {key} ({len(data)} bytes)")
        return data

    async def write(self, key: str, data: bytes) -> None:
        """
        Persist bytes under ``key``.

        The entry only becomes visible once fully written. If the write
        fails or the calling task is cancelled, the temp file is removed.

        Raises:
            StorageFailure: on I/O error.
        """
        path = self.path_for(key)
        tmp_path = path.with_name(f"{TEMP_PREFIX}{path.name}{TEMP_MARKER}{uuid.uuid4().hex}")

        try:
            await asyncio.to_thread(self._write_atomic, tmp_path, path, data)
        except OSError as e:
            logger.error(f"[CacheStore] Failed to write {key}: {e}")
            raise StorageFailure(f"Failed to write cache entry: {key}") from e
        finally:
            # Covers cancellation after the thread finished writing but before rename
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

        logger.debug(f"[CacheStore] Stored: {key} ({len(data)} bytes)")

    @staticmethod
    def _write_atomic(tmp_path: Path, path: Path, data: bytes) -> None:
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)

    async def delete(self, key: str) -> bool:
        """
        Remove a cache entry.

        Returns:
            True if a file was removed, False if it was already gone.
        """
        path = self.path_for(key)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        return True

    async def list_entries(self, include_partial: bool = False) -> List[CacheEntryInfo]:
        """
        List cache files with their size and mtime.

        The directory listing is the source of truth; files that disappear
        while listing are skipped.
        """
        return await asyncio.to_thread(self._scan, include_partial)

    def _scan(self, include_partial: bool) -> List[CacheEntryInfo]:
        entries: List[CacheEntryInfo] = []
        with os.scandir(self.cache_dir) as it:
            for dirent in it:
                try:
                    if not dirent.is_file(follow_symlinks=False):
                        continue
                    stat = dirent.stat(follow_symlinks=False)
                except FileNotFoundError:
                    continue
                entry = CacheEntryInfo(
                    key=dirent.name,
                    path=Path(dirent.path),
                    size_bytes=stat.st_size,
                    modified_at=stat.st_mtime,
                )
                if entry.is_partial and not include_partial:
                    continue
                entries.append(entry)
        return entries

    async def stats(self) -> dict:
        """Get cache statistics."""
        entries = await self.list_entries()
        total_size = sum(e.size_bytes for e in entries)
        oldest = min((e.modified_at for e in entries), default=None)
        return {
            "total_entries": len(entries),
            "total_size_bytes": total_size,
            "total_size_mb": round(total_size / (1024 * 1024), 2),
            "oldest_entry_age_hours": round((time.time() - oldest) / 3600, 2) if oldest is not None else None,
        }
