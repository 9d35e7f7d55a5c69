#!/usr/bin/env python3
"""
Analytics interface definitions and data structures.

This module defines the common data structures shared across the analytics
package. Analytics functions signal "not enough data" by returning None;
the error classes here are reserved for malformed input.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any
import uuid

from ..exceptions import AnalyticsError


class AnalyticsType(Enum):
    """Types of analytics that can be performed"""
    TRAINING_STRESS = "training_stress"
    TRAINING_LOAD = "training_load"
    RIDE_ANALYTICS = "ride_analytics"
    FTP_ESTIMATION = "ftp_estimation"
    MMP_PROGRESSION = "mmp_progression"
    MONOTONY_STRAIN = "monotony_strain"
    WORKOUT_EXECUTION = "workout_execution"


class StressMethod(Enum):
    """How a training stress value was derived"""
    DECLARED = "declared"
    RUNNING_PACE = "running_pace"
    RUNNING_HR = "running_hr"
    KILOJOULES = "kilojoules"
    DURATION_POWER = "duration_power"
    DURATION = "duration"
    NONE = "none"


@dataclass
class StressEstimate:
    """Estimated training stress together with the method that produced it"""
    value: int
    method: StressMethod
    inputs: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tss': self.value,
            'method': self.method.value,
            'inputs': self.inputs,
        }


@dataclass
class AnalyticsResult:
    """Result container for analytics operations"""
    analytics_type: AnalyticsType
    data: Dict[str, Any]
    metadata: Dict[str, Any] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    result_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to dictionary format"""
        return {
            'result_id': self.result_id,
            'analytics_type': self.analytics_type.value,
            'data': self.data,
            'metadata': self.metadata,
            'generated_at': self.generated_at.isoformat()
        }


class InvalidParameterError(AnalyticsError):
    """Raised when invalid parameters are provided"""
    pass
