"""
PeakLoad Utils Package
"""
from .core import (
    LoggingConfig,
    setup_peakload_logging,
    get_logger,
)
from .logging import setup_logging, setup_from_settings, get_service_logger

__all__ = [
    # Core utilities
    'LoggingConfig',
    'setup_peakload_logging',
    'get_logger',
    # Structured logging
    'setup_logging',
    'setup_from_settings',
    'get_service_logger',
]
