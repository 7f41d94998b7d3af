"""Periodic eviction of expired rate-limit and burst-detection state.

Runs a sweep on a fixed interval (five minutes by default) so the
in-memory maps stay bounded. A sweep is synchronous and never awaits, so it
cannot interleave with a ``check`` or ``record`` call halfway through.
"""

from __future__ import annotations

import asyncio
from typing import Tuple

from clubguard.security.rate_limiter import RateLimiter
from clubguard.security.suspicious_activity import SuspiciousActivityDetector
from clubguard.util.logger import get_logger

logger = get_logger("cleanup_scheduler")


class CleanupScheduler:
    """
    Background task that sweeps the rate limiter and burst detector.

    Args:
        rate_limiter: Limiter whose expired windows are removed.
        detector: Detector whose stale buckets are removed.
        interval: Seconds between sweeps.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        detector: SuspiciousActivityDetector,
        interval: float = 300.0,
    ) -> None:
        self._rate_limiter = rate_limiter
        self._detector = detector
        self.interval = interval
        self._task: asyncio.Task | None = None

    def sweep(self) -> Tuple[int, int]:
        """Run one pass; returns ``(rate_limits_removed, buckets_removed)``."""
        rate_limits_removed = self._rate_limiter.sweep()
        buckets_removed = self._detector.sweep()
        if rate_limits_removed or buckets_removed:
            logger.debug(
                "[CLEANUP] Removed %d rate-limit entries and %d activity buckets",
                rate_limits_removed, buckets_removed,
            )
        return rate_limits_removed, buckets_removed

    async def _run_loop(self) -> None:
        logger.info("[CLEANUP] Starting periodic sweep (interval=%.1fs)", self.interval)
        try:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    self.sweep()
                except Exception as exc:
                    logger.error("[CLEANUP] Unexpected error during sweep: %s", exc)
        except asyncio.CancelledError:
            logger.info("[CLEANUP] Periodic sweep cancelled")
            raise

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background task if not already running. Needs a running loop."""
        if self.running:
            logger.warning("[CLEANUP] Sweep task already running")
            return
        self._task = asyncio.create_task(self._run_loop())

    async def shutdown(self) -> None:
        """Stop the task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[CLEANUP] Scheduler shutdown complete")
