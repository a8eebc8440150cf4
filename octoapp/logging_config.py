"""
Structured Logging Configuration

This module sets up structured logging using structlog.
Logs are formatted as JSON in production for easy parsing by log aggregators.

Design Decisions:
- Use structlog for structured, contextual logging
- JSON format in production, colored console in development
- Never log sensitive data (webhook secrets, keys, tokens, signatures)
- Library modules only call get_logger(); the application decides when
  to call setup_logging()
"""

import logging
import sys
from typing import Any, Dict

import structlog
from structlog.types import EventDict, WrappedLogger

from octoapp import __version__

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = {
    "token", "secret", "password", "private_key", "key", "authorization",
    "credential", "jwt", "bearer", "signature"
}

# Values that look like credentials regardless of the key they are logged under
SENSITIVE_PREFIXES = (
    "ghp_", "ghs_", "ghu_", "gho_", "ghr_", "github_pat_", "sha256=",
    "-----BEGIN"
)

_handler_installed = False


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def filter_sensitive_data(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """
    Processor to redact sensitive data from logs.

    Matches on key names and on values shaped like GitHub tokens,
    signature headers or PEM keys.
    """

    def redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively redact sensitive values in a dict."""
        result = {}
        for key, value in d.items():
            if key != "event" and _is_sensitive_key(key):
                result[key] = REDACTED
            elif isinstance(value, dict):
                result[key] = redact_dict(value)
            elif isinstance(value, str) and value.startswith(SENSITIVE_PREFIXES):
                result[key] = REDACTED
            else:
                result[key] = value
        return result

    return redact_dict(event_dict)


def add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add library context to every log entry."""
    event_dict["lib"] = "octoapp"
    event_dict["version"] = __version__
    return event_dict


def setup_logging(level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure structured logging for the application.

    Safe to call more than once; the stdout handler is only installed
    the first time.

    Args:
        level: Root log level name
        json_format: Render JSON (True) or colored console output (False)
    """
    global _handler_installed

    shared_processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_app_context,
        filter_sensitive_data,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_format:
        # Production: JSON format for log aggregators
        renderer = structlog.processors.JSONRenderer()
    else:
        # Development: Colored console output
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()

    if not _handler_installed:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
        _handler_installed = True
    else:
        for handler in root_logger.handlers:
            if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
                handler.setFormatter(formatter)

    root_logger.setLevel(getattr(logging, level.upper()))

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        logger = get_logger(__name__)
        logger.info("Webhook received", event_type="push", delivery_id="...")

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
