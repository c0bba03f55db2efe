"""
Log entry data models and wire serialization.

- appId is always present; every other field is omitted when unset
- Wire keys are camelCase, matching what the ingestion endpoint expects
- Two entries are identical iff their compact JSON serializations match
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ErrorInfo(BaseModel):
    """Details captured from an exception object."""

    name: Optional[str] = None
    message: Optional[str] = None
    description: Optional[str] = None
    number: Optional[Union[int, float]] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")
    line_number: Optional[Union[int, float]] = Field(default=None, alias="lineNumber")
    column_number: Optional[Union[int, float]] = Field(default=None, alias="columnNumber")
    stack: Optional[str] = None

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class LegacyErrorInfo(BaseModel):
    """Fields of a window-level error event (message, source, lineno, colno)."""

    message: Optional[str] = None
    source: Optional[str] = None
    lineno: Optional[Union[int, float]] = None
    colno: Optional[Union[int, float]] = None

    model_config = ConfigDict(frozen=True)


class LogEntry(BaseModel):
    """
    Individual log entry.

    Immutable once built; produced by LogBuilder.
    """

    app_id: str = Field(alias="appId", description="Application identifier")
    legacy_error: Optional[LegacyErrorInfo] = Field(
        default=None,
        alias="legacyError",
        description="Window-level error details",
    )
    error: Optional[ErrorInfo] = Field(default=None, description="Exception details")
    message: Optional[str] = Field(default=None, description="Developer message")
    location: Optional[str] = Field(default=None, description="Current page or process location")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Wire representation: camelCase keys, unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True)


EntryLike = Union[LogEntry, Mapping[str, Any]]


def entry_to_dict(entry: EntryLike) -> Dict[str, Any]:
    if isinstance(entry, LogEntry):
        return entry.to_wire()
    return dict(entry)


def serialize_entry(entry: EntryLike) -> str:
    """Compact, order-preserving JSON used both on the wire and as identity."""
    return json.dumps(entry_to_dict(entry), separators=(",", ":"), ensure_ascii=False)


def serialize_entries(entries: Iterable[EntryLike]) -> str:
    """POST body for a batch: a JSON array in buffer order."""
    return json.dumps(
        [entry_to_dict(entry) for entry in entries],
        separators=(",", ":"),
        ensure_ascii=False,
    )


@dataclass(frozen=True)
class ErrorReport:
    """One item of an error batch."""
    error: Any = None
    developer_message: Any = None


@dataclass(frozen=True)
class LegacyErrorReport:
    """One item of a legacy error batch."""
    message: Any = None
    source: Any = None
    lineno: Any = None
    colno: Any = None
    error: Any = None
    developer_message: Any = None


def as_error_report(item: Union[ErrorReport, Mapping[str, Any]]) -> ErrorReport:
    if isinstance(item, ErrorReport):
        return item
    return ErrorReport(**item)


def as_legacy_error_report(item: Union[LegacyErrorReport, Mapping[str, Any]]) -> LegacyErrorReport:
    if isinstance(item, LegacyErrorReport):
        return item
    return LegacyErrorReport(**item)


@dataclass(frozen=True)
class EndpointLease:
    """Currently provisioned ingestion endpoint."""
    url: str


def batch_preview(entries: List[EntryLike], limit: int = 3) -> List[Dict[str, Any]]:
    """First few entries of a batch, for diagnostics."""
    return [entry_to_dict(entry) for entry in entries[:limit]]
