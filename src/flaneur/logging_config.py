"""Logging configuration."""

import logging
import sys
from typing import Any

import structlog

from flaneur.settings import settings

# Event keys that may carry a visitor address
RAW_IP_KEYS = frozenset({"ip", "client_ip", "remote_addr", "x_forwarded_for"})


def drop_raw_ips(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Remove raw visitor IPs from an event before it is rendered."""
    for key in RAW_IP_KEYS.intersection(event_dict):
        del event_dict[key]
    return event_dict


def configure_logging() -> None:
    """Configure structured logging."""

    # Configure processors based on format
    if settings.log_format == "json":
        processors = [
            structlog.contextvars.merge_contextvars,
            drop_raw_ips,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            structlog.contextvars.merge_contextvars,
            drop_raw_ips,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Also configure standard logging for third-party libraries
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
