"""
Sliding window rate limiting for log entries.
"""

import time
from collections import deque
from typing import Deque, Optional

import structlog

logger = structlog.get_logger(__name__)


class SlidingWindowRateLimiter:
    """
    Bounds the number of entries admitted within a trailing time window.

    One limiter is shared by every call family of a client, so messages,
    errors and legacy errors draw from the same budget. Rejected entries
    are dropped, never queued for later.
    """

    def __init__(self, max_count: int, window_seconds: float) -> None:
        self.max_count = max_count
        self.window_seconds = window_seconds
        self.timestamps: Deque[float] = deque()

    def allow(self, now: Optional[float] = None) -> bool:
        """
        Try to admit one entry.

        Returns True and records the admission if the window has room,
        otherwise logs a rate limit warning and returns False.
        """
        if now is None:
            now = time.time()

        # Trim admissions that have left the window
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] < cutoff:
            self.timestamps.popleft()

        if len(self.timestamps) >= self.max_count:
            logger.warning(
                "Logging rate limit reached",
                max_count=self.max_count,
                window_seconds=self.window_seconds,
                retry_after=round(self.get_retry_after(now), 3),
            )
            return False

        self.timestamps.append(now)
        return True

    def get_retry_after(self, now: Optional[float] = None) -> float:
        """Seconds until the oldest admission leaves the window."""
        if now is None:
            now = time.time()
        if len(self.timestamps) < self.max_count or not self.timestamps:
            return 0.0
        return max(0.0, self.timestamps[0] + self.window_seconds - now)
