"""Structured logging utilities for httpmeta.

This module provides structured logging using structlog.
Request-scoped log entries carry the request_id of the NormalizedRequest
that produced them.
"""

import logging
import os
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def add_request_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add request_id to log context if available."""
    request_id = request_id_var.get()
    if request_id and "request_id" not in event_dict:
        event_dict["request_id"] = request_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: Optional[str] = None,
    json_output: Optional[bool] = None
) -> None:
    """Configure structlog for an application embedding httpmeta.

    Never called on import: the host application owns the structlog setup
    and calls this only if it wants httpmeta's processors.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to HTTPMETA_LOG_LEVEL, then WARNING.
        json_output: If True, output JSON format. If False, use console format.
            Defaults to HTTPMETA_JSON_LOGS ("true" unless set otherwise).
    """
    if log_level is None:
        log_level = os.getenv("HTTPMETA_LOG_LEVEL", "WARNING")
    if json_output is None:
        json_output = os.getenv("HTTPMETA_JSON_LOGS", "true").lower() == "true"

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Pretty console output for development
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "httpmeta", **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger instance.

    Loggers are lazy proxies, so they follow whatever structlog configuration
    is active when they first log.

    Args:
        name: Logger name (typically module name)
        **initial_values: Context bound to every entry of the returned logger

    Returns:
        structlog logger
    """
    return structlog.get_logger(name, **initial_values)


def set_request_id(request_id: str) -> None:
    """Set request ID in context for all subsequent logs.

    Args:
        request_id: Unique identifier for the request
    """
    request_id_var.set(request_id)


def clear_request_id() -> None:
    """Clear request ID from context."""
    request_id_var.set(None)

