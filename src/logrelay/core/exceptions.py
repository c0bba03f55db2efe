"""
Custom exceptions for the log relay client.

These are raised inside the server logger and caught at the dispatch
boundary; none of them reach application code calling the client.
"""

from typing import Any, Dict, Optional


class LogRelayException(Exception):
    """Base exception for the log relay client."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ProvisioningError(LogRelayException):
    """Raised when the ingestion endpoint cannot be provisioned."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            error_code="provisioning_error",
            details=details,
        )


class TransportError(LogRelayException):
    """Raised when a request to the ingestion endpoint fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if status_code is not None:
            details["status_code"] = status_code

        super().__init__(
            message=message,
            error_code="transport_error",
            details=details,
        )
        self.status_code = status_code
