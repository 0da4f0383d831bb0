"""
Shared error handling for the Catalog Explorer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from shared.logging import session_id_var


class ErrorInfo(BaseModel):
    """Standard error payload, stored on cache entries and returned by the API."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ExplorerException(Exception):
    """Base exception for Catalog Explorer components."""

    http_status = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_error_info(self) -> ErrorInfo:
        """Convert to error payload."""
        # Session id doubles as the correlation id for a browsing session
        return ErrorInfo(
            trace_id=session_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )

    def to_response(self) -> Dict[str, Any]:
        """Convert to a JSON-ready response body."""
        return self.to_error_info().model_dump()


class TransportError(ExplorerException):
    """The request to the catalog could not complete."""

    def __init__(self, message: str = "Could not reach the catalog", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_ERROR", message, details)


class ResponseError(ExplorerException):
    """The catalog answered with a non-success status."""

    def __init__(self, status_code: int, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        details = dict(details or {})
        details.setdefault("status_code", status_code)
        super().__init__(
            "RESPONSE_ERROR",
            message or f"Catalog responded with status {status_code}",
            details
        )


class ShapeError(ExplorerException):
    """The catalog response did not match the expected structure."""

    def __init__(self, message: str = "Unexpected response shape from catalog", details: Optional[Dict[str, Any]] = None):
        super().__init__("SHAPE_ERROR", message, details)


class ValidationError(ExplorerException):
    """Validation-related errors."""

    http_status = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(ExplorerException):
    """Requested resource does not exist."""

    http_status = 404

    def __init__(self, message: str = "Not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("NOT_FOUND", message, details)


class RetryError(ExplorerException):
    """Raised by the retry hook when all attempts are exhausted."""

    def __init__(self, message: str, last_exception: Exception, attempts: int):
        self.last_exception = last_exception
        self.attempts = attempts
        if isinstance(last_exception, ExplorerException):
            code = last_exception.code
            details = dict(last_exception.details)
            message = last_exception.message
        else:
            code = "RETRY_EXHAUSTED"
            details = {"error": str(last_exception)}
        details["attempts"] = attempts
        super().__init__(code, message, details)
