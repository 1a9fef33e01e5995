"""
Rate Limit Store Implementation
限流计数存储

Thread-safe in-memory storage for fixed-window request counters.
One store is created per server process (owned by the app lifespan) and
shared by every limiter; keys are namespaced by limiter name.

Features:
- Thread-safe increments with Lock (no racing past a limit)
- Lazy window reset on access
- Periodic purge of expired windows to bound memory
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RateWindowEntry:
    """
    Counter for one client key within one window
    单个客户端在当前窗口内的计数
    """
    count: int
    window_reset_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        """A window is over once the current time passes its reset time."""
        return self.window_reset_at_ms < now_ms


class RateLimitStore:
    """
    Thread-safe in-memory counter store
    线程安全的内存计数存储

    A dead entry never causes undercounting: `hit()` replaces an expired
    entry with a fresh window before incrementing, so the purge task is only
    a memory optimization.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        """
        Args:
            clock: Returns the current time in epoch milliseconds
        """
        self._entries: Dict[str, RateWindowEntry] = {}
        self._lock = Lock()
        self._clock = clock or _now_ms
        self._purge_task: Optional[asyncio.Task] = None

    def now_ms(self) -> int:
        return self._clock()

    def hit(self, key: str, window_ms: int, now_ms: Optional[int] = None) -> RateWindowEntry:
        """
        Count one request for `key` and return a snapshot of its window.

        Args:
            key: Namespaced client key
            window_ms: Window length used when a fresh window is opened
            now_ms: Current time (defaults to the store clock)

        Returns:
            Copy of the entry after incrementing
        """
        now = self._clock() if now_ms is None else now_ms
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.is_expired(now):
                entry = RateWindowEntry(count=0, window_reset_at_ms=now + window_ms)
                self._entries[key] = entry
            entry.count += 1
            return RateWindowEntry(entry.count, entry.window_reset_at_ms)

    def get(self, key: str) -> Optional[RateWindowEntry]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            return RateWindowEntry(entry.count, entry.window_reset_at_ms)

    def purge_expired(self, now_ms: Optional[int] = None) -> int:
        """
        Remove entries whose window has ended
        清理过期窗口

        Returns:
            Number of entries removed
        """
        now = self._clock() if now_ms is None else now_ms
        with self._lock:
            expired = [k for k, v in self._entries.items() if v.is_expired(now)]
            for k in expired:
                del self._entries[k]
        if expired:
            logger.debug(f"[RateLimiter] Purged {len(expired)} expired windows")
        return len(expired)

    # ============================================
    # Lifecycle
    # ============================================

    def start_purge(self, interval_seconds: float) -> None:
        """Start the periodic purge on the running event loop."""
        if interval_seconds <= 0 or self._purge_task is not None:
            return
        self._purge_task = asyncio.create_task(self._purge_loop(interval_seconds))
        logger.info(f"[RateLimiter] Purge task started (every {interval_seconds}s)")

    async def stop_purge(self) -> None:
        task, self._purge_task = self._purge_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _purge_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            self.purge_expired()
