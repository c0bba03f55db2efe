"""
Duplicate entry throttling.
"""

import time
from typing import Dict, Optional

from ..models.log_entry import EntryLike, serialize_entry


class DuplicateThrottle:
    """
    Suppresses entries identical to one admitted within the window.

    Identity is the entry's full serialization, location included, so the
    same message logged from two different pages is not throttled.
    """

    def __init__(self, window_seconds: float = 60.0) -> None:
        self.window_seconds = window_seconds
        self.unique_logs: Dict[str, float] = {}

    def allow(self, entry: EntryLike, now: Optional[float] = None) -> bool:
        if now is None:
            now = time.time()

        key = serialize_entry(entry)
        last_logged = self.unique_logs.get(key)
        if last_logged is None or now - last_logged >= self.window_seconds:
            self.unique_logs[key] = now
            return True
        return False
