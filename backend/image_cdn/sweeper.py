"""
Eviction Sweeper
缓存过期清理

Background task that periodically deletes cache files whose mtime is older
than the retention window. Runs independently of request handling:
- start()/stop() lifecycle, driven by the app lifespan
- per-entry failures are logged and skipped
- a failed run is logged and the loop waits for the next interval
"""

import asyncio
import logging
import time
from typing import Optional

from .cache_store import ImageCacheStore
from .models import SweepReport

logger = logging.getLogger(__name__)


class EvictionSweeper:
    """Time-based eviction for the image cache store."""

    def __init__(
        self,
        store: ImageCacheStore,
        retention_seconds: float = 7 * 24 * 60 * 60,
        interval_seconds: float = 24 * 60 * 60,
    ):
        self.store = store
        self.retention_seconds = retention_seconds
        self.interval_seconds = interval_seconds
        self.last_report: Optional[SweepReport] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop (no-op if already running)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(
            f"[Sweeper] Started (every {self.interval_seconds / 3600:g}h, "
            f"retention {self.retention_seconds / 86400:g}d)"
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to exit."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("[Sweeper] Stopped")

    async def _sweep_loop(self) -> None:
        """Sleep, sweep, repeat."""
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"[Sweeper] Cache cleanup failed: {e}", exc_info=True)

    async def run_once(self, now: Optional[float] = None) -> SweepReport:
        """
        Run one sweep.

        Args:
            now: Reference time (epoch seconds), defaults to time.time()

        Returns:
            SweepReport with scanned/deleted/failed counts.
        """
        started = time.monotonic()
        now = time.time() if now is None else now
        report = SweepReport()

        logger.info("[Sweeper] Running cache cleanup...")
        entries = await self.store.list_entries(include_partial=True)
        report.scanned = len(entries)

        for entry in entries:
            if entry.age_seconds(now) <= self.retention_seconds:
                continue
            try:
                removed = await self.store.delete(entry.key)
            except Exception as e:
                report.failed += 1
                logger.error(f"[Sweeper] Failed to delete {entry.key}: {e}")
                continue
            if removed:
                report.deleted += 1
                report.deleted_keys.append(entry.key)
                logger.info(f"[Sweeper] Deleted old cache file: {entry.key}")

        report.duration_ms = int((time.monotonic() - started) * 1000)
        self.last_report = report
        logger.info(
            f"[Sweeper] Cache cleanup completed: {report.deleted} deleted, "
            f"{report.failed} failed, {report.scanned} scanned"
        )
        return report
