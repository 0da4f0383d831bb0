"""
Shared logging configuration for the Catalog Explorer.

Events are rendered as one JSON object per line. Each carries an ISO
`timestamp`, the logger name and level, the `service` taken from the first
segment of the logger name, and the `session_id` and `view` of the request
being served when they are set.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)
view_var: ContextVar[Optional[str]] = ContextVar('view', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        service_name = logger_name.split(".")[0]
        event_dict["service"] = service_name

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add session correlation context to log events."""
    session_id = session_id_var.get()
    if session_id:
        event_dict["session_id"] = session_id

    view = view_var.get()
    if view:
        event_dict["view"] = view

    return event_dict


def new_session_id() -> str:
    """Generate a fresh session identifier."""
    return str(uuid.uuid4())


def set_session_context(session_id: Optional[str] = None, view: Optional[str] = None) -> str:
    """Set session correlation in context."""
    if session_id is None:
        session_id = new_session_id()
    session_id_var.set(session_id)
    if view:
        view_var.set(view)
    return session_id


def clear_context():
    """Clear all context variables."""
    session_id_var.set(None)
    view_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
