"""
Custom exception classes for PeakLoad.

This module defines the exception hierarchy used throughout PeakLoad.
"Not enough data" is not an error here: analytics functions return None for
that case, so these exceptions cover configuration, storage and genuine
computation failures only.
"""

from typing import Optional, Any, Dict


class PeakLoadError(Exception):
    """
    Base exception for all PeakLoad errors.

    All custom exceptions in this package inherit from this class.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigurationError(PeakLoadError):
    """
    Raised when there are configuration-related errors.

    Examples:
    - Invalid provider priority table
    - Non-positive load time constants
    """
    pass


class StorageError(PeakLoadError):
    """
    Raised when storage operations fail.

    Examples:
    - Backend unavailable
    - Upsert rejected by a uniqueness constraint
    - Query execution errors
    """
    pass


class ActivityNotFoundError(StorageError):
    """Raised when an activity id does not resolve to a stored record."""
    pass


class AnalyticsError(PeakLoadError):
    """
    Raised when an analytics computation fails in an unexpected way.

    Examples:
    - Non-finite values in a signal
    - Inconsistent stream lengths passed by a caller
    """
    pass


class ValidationError(PeakLoadError):
    """
    Raised when input validation fails.

    Examples:
    - Unparseable dates
    - Negative durations or distances
    """
    pass


class SnapshotComputationError(PeakLoadError):
    """Raised when a weekly fitness snapshot cannot be computed."""
    pass


# Convenience functions for creating common exceptions

def configuration_error(message: str, **details) -> ConfigurationError:
    """Create a configuration error with details."""
    return ConfigurationError(message, details)


def activity_not_found(activity_id: str, **details) -> ActivityNotFoundError:
    """Create an activity-not-found error with details."""
    return ActivityNotFoundError(f"Activity not found: {activity_id}", {"activity_id": activity_id, **details})


def validation_error(message: str, **details) -> ValidationError:
    """Create a validation error with details."""
    return ValidationError(message, details)


def snapshot_error(message: str, **details) -> SnapshotComputationError:
    """Create a snapshot computation error with details."""
    return SnapshotComputationError(message, details)
