"""
Library wiring.

Configures structured logging and owns the process-wide server logger that
every client created with create_client() shares, so all applications in a
process feed one buffer and one endpoint lease.
"""

import logging
from typing import Any, Optional

import structlog

from .config import get_settings
from .core.client import LoggingClient
from .core.host import ProcessHost
from .core.metrics import MetricsCollector
from .core.server_logger import ServerLogger
from .core.transport import AiohttpTransport


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured logging for the library and its host."""
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    # aiohttp access/client chatter is not useful next to our own diagnostics
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


# Shared server logger instance
_server_logger: Optional[ServerLogger] = None
_metrics: Optional[MetricsCollector] = None


def get_metrics() -> MetricsCollector:
    """Get or create the process-wide metrics collector."""
    global _metrics

    if _metrics is None:
        _metrics = MetricsCollector()

    return _metrics


def get_server_logger() -> ServerLogger:
    """Get or create the shared server logger."""
    global _server_logger

    if _server_logger is None:
        settings = get_settings()
        _server_logger = ServerLogger(
            batch_size=settings.batch.batch_size,
            batch_time_seconds=settings.batch.batch_time_seconds,
            transport=AiohttpTransport(settings.transport),
            host=ProcessHost(settings.host, settings.transport),
            metrics=get_metrics(),
        )

    return _server_logger


def create_client(app_id: Any, should_throttle: bool = False) -> LoggingClient:
    """Create a client for app_id bound to the shared server logger."""
    server_logger = get_server_logger()
    return LoggingClient(
        app_id,
        server_logger,
        should_throttle=should_throttle,
        host=server_logger.host,
        metrics=get_metrics(),
    )
