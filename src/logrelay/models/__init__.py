"""
Pydantic data models package.

Contains the log entry schema, the batch call report types and the
wire serialization helpers.
"""

from .log_entry import (
    EndpointLease,
    EntryLike,
    ErrorInfo,
    ErrorReport,
    LegacyErrorInfo,
    LegacyErrorReport,
    LogEntry,
    serialize_entries,
    serialize_entry,
)

__all__ = [
    # Log entry models
    "LogEntry",
    "ErrorInfo",
    "LegacyErrorInfo",
    "EntryLike",

    # Batch call items
    "ErrorReport",
    "LegacyErrorReport",

    # Endpoint
    "EndpointLease",

    # Serialization
    "serialize_entry",
    "serialize_entries",
]
