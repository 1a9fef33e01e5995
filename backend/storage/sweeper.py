"""
Upload Sweeper

Age-based eviction of files in the upload directory:
- Files whose mtime is older than max age (strictly) are deleted
- The reserved keep-file is never touched
- A failing file is counted and skipped; siblings are still processed
- Runs on a timer and on demand
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE_MS = 60 * 60 * 1000  # 1 hour


@dataclass
class SweepResult:
    deleted: int = 0
    errors: int = 0

    def to_dict(self) -> dict:
        return {"deleted": self.deleted, "errors": self.errors}


class UploadSweeper:
    """
    Deletes stale uploads.

    Usage:
        sweeper = UploadSweeper("./public/uploads")
        result = sweeper.sweep(30 * 60 * 1000)
    """

    def __init__(
        self,
        upload_dir: str | Path,
        keep_file: str = ".gitkeep",
        default_max_age_ms: int = DEFAULT_MAX_AGE_MS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            upload_dir: Directory to sweep
            keep_file: Reserved file name that is never deleted
            default_max_age_ms: Age used when sweep() gets no override
            clock: Returns the current time in epoch seconds
        """
        self.upload_dir = Path(upload_dir)
        self.keep_file = keep_file
        self.default_max_age_ms = default_max_age_ms
        self._clock = clock or time.time
        self._task: Optional[asyncio.Task] = None

    def sweep(self, max_age_ms: Optional[int] = None) -> SweepResult:
        """
        Delete files older than `max_age_ms`.

        Returns:
            SweepResult with deleted and error counts
        """
        max_age_ms = self.default_max_age_ms if max_age_ms is None else max_age_ms

        if not self.upload_dir.exists():
            logger.info("[UploadSweeper] Uploads directory does not exist, nothing to clean up")
            return SweepResult()

        try:
            names = os.listdir(self.upload_dir)
        except OSError as e:
            logger.error(f"[UploadSweeper] Error listing uploads: {e}")
            return SweepResult(deleted=0, errors=1)

        names = [name for name in names if name != self.keep_file]
        logger.info(f"[UploadSweeper] Checking {len(names)} files for cleanup...")

        now_ms = self._clock() * 1000
        result = SweepResult()

        for name in names:
            path = self.upload_dir / name
            try:
                stat = path.stat()
                if path.is_dir():
                    continue
                age_ms = now_ms - stat.st_mtime_ns / 1_000_000
                if age_ms > max_age_ms:
                    path.unlink()
                    result.deleted += 1
                    logger.info(f"[UploadSweeper] Deleted old file: {name} (age: {round(age_ms / 60000)} minutes)")
            except OSError as e:
                # Includes files removed by an overlapping sweep
                logger.error(f"[UploadSweeper] Error processing file {name}: {e}")
                result.errors += 1

        logger.info(
            f"[UploadSweeper] Cleanup complete. Deleted {result.deleted} files, "
            f"encountered {result.errors} errors."
        )
        return result

    async def sweep_async(self, max_age_ms: Optional[int] = None) -> SweepResult:
        """Run sweep() off the event loop."""
        return await asyncio.to_thread(self.sweep, max_age_ms)

    # ============================================
    # Scheduling
    # ============================================

    def start(self, interval_seconds: float, run_immediately: bool = True) -> None:
        """Start the scheduled sweep on the running event loop."""
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._loop(interval_seconds, run_immediately))

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self, interval_seconds: float, run_immediately: bool) -> None:
        if run_immediately:
            logger.info("[UploadSweeper] Running initial cleanup of old uploads...")
            await self.sweep_async()
        if interval_seconds <= 0:
            return
        while True:
            await asyncio.sleep(interval_seconds)
            await self.sweep_async()
