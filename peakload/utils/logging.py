"""
Structured logging configuration for PeakLoad services.

Library modules log through ``peakload.utils.core.get_logger``; the
orchestration services log through structlog so that athlete and week
context travels with every event.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.typing import FilteringBoundLogger

from .core import LoggingConfig
from ..exceptions import configuration_error


_configured = False


def _stderr_logger(*args) -> structlog.PrintLogger:
    # resolved per call so redirected streams are honoured
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(
    level: str = "INFO",
    format_type: str = "console",
    log_file: Optional[str] = None,
) -> None:
    """
    Setup logging configuration for PeakLoad.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ('console', 'json')
        log_file: Optional log file path
    """
    global _configured

    if format_type not in ("console", "json"):
        raise configuration_error("Unknown log format", format_type=format_type)

    LoggingConfig.setup_logging(log_level=level, log_file=log_file)
    log_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="ISO"),
    ]
    if format_type == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
    _configured = True


def setup_from_settings() -> None:
    """Configure logging from the loaded application settings."""
    from ..config import get_settings

    logging_settings = get_settings().logging
    setup_logging(
        level=logging_settings.level,
        format_type=logging_settings.format,
        log_file=logging_settings.log_file,
    )


def get_service_logger(service_name: str, **context) -> FilteringBoundLogger:
    """
    Get a structured logger for a service.

    Args:
        service_name: Name of the service
        **context: Additional context to include in logs

    Returns:
        Structured logger with service context
    """
    if not _configured:
        setup_from_settings()

    logger = structlog.get_logger(service_name)
    if context:
        logger = logger.bind(**context)
    return logger
