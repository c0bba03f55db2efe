"""
Logging client facade.

Builds entries for each call family and runs them through the admission
pipeline before handing the survivors to the server logger:

1. Benign legacy error filter (legacy errors only)
2. Sliding window rate limit, shared by all call families
3. Duplicate throttle (when enabled)
"""

from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

import structlog

from ..config import get_settings
from ..models.log_entry import (
    ErrorReport,
    LegacyErrorReport,
    LogEntry,
    as_error_report,
    as_legacy_error_report,
)
from .builder import LogBuilder
from .filters import is_benign
from .host import Host
from .metrics import MetricsCollector
from .rate_limit import SlidingWindowRateLimiter
from .throttle import DuplicateThrottle

logger = structlog.get_logger(__name__)


class EntrySink(Protocol):
    """Anything that accepts built entries, normally a ServerLogger."""

    def submit(self, entries: Sequence[LogEntry]) -> None:
        ...


class LoggingClient:
    """
    Public logging surface for one application.

    None of the public methods raise; failures are reported through the
    structured logger instead.
    """

    def __init__(
        self,
        app_id: Any,
        server_logger: EntrySink,
        should_throttle: bool = False,
        host: Optional[Host] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        settings = get_settings()

        self.app_id = app_id
        self.server_logger = server_logger
        self.host = host
        self.metrics = metrics
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            max_count=settings.rate_limit.max_count,
            window_seconds=settings.rate_limit.window_seconds,
        )
        self.throttle: Optional[DuplicateThrottle] = None
        if should_throttle:
            self.throttle = DuplicateThrottle(settings.throttle.window_seconds)

    @property
    def should_throttle(self) -> bool:
        return self.throttle is not None

    def log(self, developer_message: Any) -> None:
        self.log_batch([developer_message])

    def log_batch(self, developer_messages: Iterable[Any]) -> None:
        try:
            logs = [
                self._builder().with_message(message).with_location(self._location()).build()
                for message in developer_messages
            ]
            self._submit(logs)
        except Exception as e:
            self._report_failure("log_batch", e)

    def error(self, error: Any, developer_message: Any = None) -> None:
        self.error_batch([ErrorReport(error=error, developer_message=developer_message)])

    def error_batch(self, errors: Iterable[Union[ErrorReport, Mapping[str, Any]]]) -> None:
        try:
            logs = []
            for item in errors:
                report = as_error_report(item)
                logs.append(
                    self._builder()
                    .with_error(report.error)
                    .with_message(report.developer_message)
                    .with_location(self._location())
                    .build()
                )
            self._submit(logs)
        except Exception as e:
            self._report_failure("error_batch", e)

    def legacy_error(
        self,
        message: Any = None,
        source: Any = None,
        lineno: Any = None,
        colno: Any = None,
        error: Any = None,
        developer_message: Any = None,
    ) -> None:
        self.legacy_error_batch([
            LegacyErrorReport(
                message=message,
                source=source,
                lineno=lineno,
                colno=colno,
                error=error,
                developer_message=developer_message,
            )
        ])

    def legacy_error_batch(
        self,
        legacy_errors: Iterable[Union[LegacyErrorReport, Mapping[str, Any]]],
    ) -> None:
        try:
            logs = []
            for item in legacy_errors:
                report = as_legacy_error_report(item)
                logs.append(
                    self._builder()
                    .with_legacy_error(report.message, report.source, report.lineno, report.colno)
                    .with_error(report.error)
                    .with_message(report.developer_message)
                    .with_location(self._location())
                    .build()
                )
            self._submit(logs, legacy=True)
        except Exception as e:
            self._report_failure("legacy_error_batch", e)

    def _builder(self) -> LogBuilder:
        return LogBuilder(self.app_id)

    def _location(self) -> Optional[str]:
        return self.host.location() if self.host is not None else None

    def _submit(self, logs: List[LogEntry], legacy: bool = False) -> None:
        admitted = [log for log in logs if self._admit(log, legacy)]
        if not admitted:
            return
        if self.metrics:
            self.metrics.record_submitted(len(admitted))
        self.server_logger.submit(admitted)

    def _admit(self, log: LogEntry, legacy: bool) -> bool:
        # Order matters: throttled entries still consume rate limit budget
        if legacy and is_benign(log):
            self._record_drop("benign")
            return False
        if not self.rate_limiter.allow():
            self._record_drop("rate_limited")
            return False
        if self.throttle is not None and not self.throttle.allow(log):
            self._record_drop("throttled")
            return False
        return True

    def _record_drop(self, reason: str) -> None:
        if self.metrics:
            self.metrics.record_dropped(reason)

    def _report_failure(self, operation: str, error: Exception) -> None:
        logger.error(
            "Logging call failed",
            operation=operation,
            app_id=str(self.app_id),
            error=str(error),
            error_type=type(error).__name__,
            exc_info=True,
        )
