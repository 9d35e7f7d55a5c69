#!/usr/bin/env python3
"""
PeakLoad Utilities Module

Standard-library logging for the analytics and storage modules. Everything
logs under the ``peakload`` logger tree; the handlers are attached once.
"""
import sys
import logging
from pathlib import Path
from typing import Optional


PACKAGE_LOGGER = "peakload"
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class LoggingConfig:
    """Handler setup for the ``peakload`` logger tree"""

    _initialized = False

    @classmethod
    def setup_logging(cls, log_level: str = "INFO", log_file: Optional[str] = None) -> None:
        """
        Attach a stderr handler (and optionally a file handler) to ``peakload``

        Later calls only adjust the level, so importing the package twice or
        reconfiguring from the CLI never duplicates handlers.

        Args:
            log_level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            log_file: Optional path of a log file to append to
        """
        numeric_level = getattr(logging, log_level.upper(), logging.INFO)
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        package_logger.setLevel(numeric_level)
        if cls._initialized:
            return

        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
        handlers = [logging.StreamHandler(sys.stderr)]
        if log_file:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_file))

        for handler in handlers:
            handler.setFormatter(formatter)
            package_logger.addHandler(handler)
        package_logger.propagate = False

        cls._initialized = True
        package_logger.debug(f"🔧 Logging initialized - Level: {log_level}")


def setup_peakload_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """Setup logging for the PeakLoad package, writing peakload.log under log_dir when given"""
    log_file = str(Path(log_dir) / "peakload.log") if log_dir else None
    LoggingConfig.setup_logging(log_level=log_level, log_file=log_file)


def get_logger(module_name: str) -> logging.Logger:
    """Get a logger for a module, initializing the package handlers on first use"""
    if not LoggingConfig._initialized:
        setup_peakload_logging()
    return logging.getLogger(module_name)
