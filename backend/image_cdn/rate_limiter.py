"""Per-client sliding-window rate limiter (in-memory, per process)."""

import asyncio
import time
from collections import deque
from typing import Deque, Dict, Optional


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per ``window_seconds`` per client key."""

    def __init__(self, max_requests: int = 100, window_seconds: float = 15 * 60):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._hits: Dict[str, Deque[float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, client_key: str, now: Optional[float] = None) -> bool:
        """
        Record a request for ``client_key``.

        Returns:
            True if the request is within budget, False if it should be
            rejected. Rejected requests are not counted.
        """
        now = time.monotonic() if now is None else now
        cutoff = now - self.window_seconds

        async with self._lock:
            hits = self._hits.setdefault(client_key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                return False

            hits.append(now)
            self._prune(cutoff)
            return True

    def retry_after(self, client_key: str, now: Optional[float] = None) -> int:
        """Seconds until the oldest counted request leaves the window."""
        now = time.monotonic() if now is None else now
        hits = self._hits.get(client_key)
        if not hits:
            return 0
        return max(0, int(hits[0] + self.window_seconds - now) + 1)

    def _prune(self, cutoff: float) -> None:
        # Drop idle clients so the table doesn't grow without bound
        if len(self._hits) < 1024:
            return
        idle = [k for k, v in self._hits.items() if not v or v[-1] <= cutoff]
        for k in idle:
            del self._hits[k]
