"""Structured logging configuration.

Purpose: JSON-formatted logs so booking transitions and compensation
failures can be searched by appointment id.

Pattern: structlog with standard library integration.
"""
import logging
import sys
import uuid
from datetime import date, time
from enum import Enum

import structlog

SECRET_KEYS = ("api_token", "token", "authorization")


def redact_secrets(logger, method_name, event_dict):
    """Mask POS credentials that end up in log context."""
    for key in SECRET_KEYS:
        if event_dict.get(key):
            event_dict[key] = "[REDACTED]"
    return event_dict


def stringify_booking_values(logger, method_name, event_dict):
    """Render enums and dates (booking states, appointment dates) as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (date, time)):
            event_dict[key] = value.isoformat()
    return event_dict


def setup_structured_logging(log_level: str = "INFO"):
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            redact_secrets,
            stringify_booking_values,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO)
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get logger instance with structured logging.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def generate_request_id() -> str:
    """Generate unique request ID."""
    return f"req-{uuid.uuid4().hex[:12]}"
