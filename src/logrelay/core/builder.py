"""
Log entry builder.

Turns raw inputs (developer messages, exception objects, window-level
error fields) into immutable LogEntry models. Pure: no I/O, no timers.
"""

import json
import math
import traceback
from typing import Any, Dict, Optional

from ..models.log_entry import ErrorInfo, LegacyErrorInfo, LogEntry


def _is_finite_number(val: Any) -> bool:
    """Strict numeric check: 0 passes, None/bool/NaN/inf/strings do not."""
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        return False
    return math.isfinite(val)


def _innermost_frame(error: BaseException) -> Optional[traceback.FrameSummary]:
    if error.__traceback__ is None:
        return None
    frames = traceback.extract_tb(error.__traceback__)
    return frames[-1] if frames else None


class LogBuilder:
    """
    Fluent builder for a single log entry.

    Each with_* call is optional; build() freezes the result.
    """

    def __init__(self, app_id: Any) -> None:
        self._fields: Dict[str, Any] = {"app_id": str(app_id)}

    def with_location(self, location: Optional[str]) -> "LogBuilder":
        if location:
            self._fields["location"] = str(location)
        return self

    def with_error(self, error: Any) -> "LogBuilder":
        if not isinstance(error, BaseException):
            return self

        fields: Dict[str, Any] = {}
        frame = _innermost_frame(error)

        name = type(error).__name__
        if name:
            fields["name"] = name
        message = str(error)
        if message:
            fields["message"] = message

        description = getattr(error, "strerror", None) or getattr(error, "description", None)
        if description:
            fields["description"] = str(description)

        number = getattr(error, "errno", None)
        if number is None:
            number = getattr(error, "number", None)
        if _is_finite_number(number):
            fields["number"] = number

        file_name = getattr(error, "filename", None) or (frame.filename if frame else None)
        if file_name:
            fields["file_name"] = str(file_name)

        line_number = getattr(error, "lineno", None)
        if line_number is None and frame is not None:
            line_number = frame.lineno
        if _is_finite_number(line_number):
            fields["line_number"] = line_number

        column_number = getattr(error, "offset", None)
        if _is_finite_number(column_number):
            fields["column_number"] = column_number

        if error.__traceback__ is not None:
            fields["stack"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )

        self._fields["error"] = ErrorInfo(**fields)
        return self

    def with_legacy_error(
        self,
        message: Any = None,
        source: Any = None,
        lineno: Any = None,
        colno: Any = None,
    ) -> "LogBuilder":
        fields: Dict[str, Any] = {}
        if message:
            fields["message"] = str(message)
        if source:
            fields["source"] = str(source)
        if _is_finite_number(lineno):
            fields["lineno"] = lineno
        if _is_finite_number(colno):
            fields["colno"] = colno
        self._fields["legacy_error"] = LegacyErrorInfo(**fields)
        return self

    def with_message(self, message: Any) -> "LogBuilder":
        if message is None or message == "":
            return self
        if isinstance(message, (dict, list, tuple)):
            try:
                self._fields["message"] = json.dumps(message, separators=(",", ":"), default=str)
            except (TypeError, ValueError):
                # Non-string keys or circular references
                self._fields["message"] = str(message)
        else:
            self._fields["message"] = str(message)
        return self

    def build(self) -> LogEntry:
        return LogEntry(**self._fields)
