"""
Benign legacy error filter.

Browsers raise some window-level errors that carry no diagnostic value;
these are dropped before they consume any rate limit budget.
"""

from typing import FrozenSet

from ..models.log_entry import LogEntry

BENIGN_ERRORS: FrozenSet[str] = frozenset({
    # Cross-origin script failure, details hidden by the browser
    "Script error.",
    "ResizeObserver loop limit exceeded",
    "ResizeObserver loop completed with undelivered notifications.",
})


def is_benign(entry: LogEntry) -> bool:
    """True when the entry's legacy error message is a known-harmless one."""
    legacy_error = entry.legacy_error
    if legacy_error is None or legacy_error.message is None:
        return False
    return legacy_error.message in BENIGN_ERRORS
