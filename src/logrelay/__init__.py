"""
logrelay - client-side log shipping

Batches log messages, exceptions and window-level errors, shields the
backend with rate limiting and duplicate throttling, and forwards batches
to a dynamically provisioned ingestion endpoint.
"""

__version__ = "0.1.0"

from .core.builder import LogBuilder
from .core.client import LoggingClient
from .core.host import InMemoryHost, ProcessHost
from .core.server_logger import ServerLogger
from .main import configure_logging, create_client, get_server_logger
from .models import ErrorReport, LegacyErrorReport, LogEntry

__all__ = [
    "create_client",
    "configure_logging",
    "get_server_logger",
    "LoggingClient",
    "ServerLogger",
    "LogBuilder",
    "LogEntry",
    "ErrorReport",
    "LegacyErrorReport",
    "InMemoryHost",
    "ProcessHost",
]
