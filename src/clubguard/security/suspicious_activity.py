"""
Burst detection across all commands a user issues.

Invocations are counted in fixed wall-clock buckets (10 seconds by
default) keyed by ``(user_id, floor(now / bucket))``. A call is flagged
when it brings its bucket to ``threshold`` invocations or more, so with the
default of 20 the 20th command in a bucket is the first one flagged. This is
independent of per-command rate limits: mixing many different commands
quickly can trip it while each command stays under its own limit.

Bucketing by wall clock assumes a single running instance.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Callable, Dict, Tuple

from clubguard.datatypes.security_datatypes import CallerContext, SuspicionResult, utcnow
from clubguard.util.logger import get_logger

logger = get_logger("suspicious_activity")

BucketKey = Tuple[str, int]


class SuspiciousActivityDetector:
    """Rolling per-user invocation counters over short time buckets."""

    def __init__(
        self,
        threshold: int = 20,
        bucket_seconds: int = 10,
        retention_buckets: int = 6,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if threshold < 1 or bucket_seconds < 1 or retention_buckets < 0:
            raise ValueError("Suspicious activity thresholds must be positive")
        self.threshold = threshold
        self.bucket_seconds = bucket_seconds
        self.retention_buckets = retention_buckets
        self._clock = clock
        self._buckets: Dict[BucketKey, int] = {}

    def bucket_index(self, moment: datetime) -> int:
        # Integer milliseconds so a float timestamp never lands in the wrong bucket
        millis = int(round(moment.timestamp() * 1000))
        return math.floor(millis / (self.bucket_seconds * 1000))

    def record(self, user_id: str) -> SuspicionResult:
        """Count one invocation and report whether it crossed the threshold."""
        key = (user_id, self.bucket_index(self._clock()))
        count = self._buckets.get(key, 0) + 1
        self._buckets[key] = count

        flagged = count >= self.threshold
        if flagged:
            logger.debug("[SUSPICIOUS ACTIVITY] User %s at %d commands in bucket %d", user_id, count, key[1])
        return SuspicionResult(flagged=flagged, count=count, window_seconds=self.bucket_seconds)

    def record_and_check(self, user_id: str, context: CallerContext | None = None) -> bool:
        """Record an invocation; True when this call is flagged."""
        return self.record(user_id).flagged

    def count_for(self, user_id: str, moment: datetime | None = None) -> int:
        return self._buckets.get((user_id, self.bucket_index(moment or self._clock())), 0)

    def sweep(self, now: datetime | None = None) -> int:
        """Drop buckets more than ``retention_buckets`` behind the current one."""
        current = self.bucket_index(now or self._clock())
        removed = 0
        for key in [key for key in list(self._buckets) if current - key[1] > self.retention_buckets]:
            if self._buckets.pop(key, None) is not None:
                removed += 1
        return removed

    @property
    def tracked_buckets(self) -> int:
        return len(self._buckets)

    def clear(self) -> None:
        self._buckets.clear()
