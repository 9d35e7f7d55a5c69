#!/usr/bin/env python3
"""
PeakLoad - Training Load and Ride Analytics Engine
Derives training stress, fitness/fatigue load, per-ride and longitudinal
analytics from a deduplicated canonical activity history.
"""

# Setup logging first
from .utils import setup_peakload_logging
setup_peakload_logging()

# Storage interfaces and implementations
from .storage import (
    ActivityQuery, ActivityStore, SnapshotStore, PreferenceStore, PlannedWorkoutStore,
    Activity, AthletePreferences, FitnessSnapshot, PlannedWorkout, Provider,
    InMemoryStorage
)

# Analytics
from .analytics import (
    estimate_stress, estimate_stress_breakdown,
    calculate_ctl, calculate_atl, calculate_tsb, get_week_start,
    compute_ride_analytics, analyze_activity,
    estimate_dynamic_ftp, track_mmp_progression,
    calculate_training_monotony_strain, score_workout_execution
)

# Services
from .services import (
    SnapshotService, BackfillResult, DeduplicationService, DuplicateVerdict,
    FitnessHistoryService
)

from .exceptions import PeakLoadError, StorageError, ActivityNotFoundError

__version__ = "0.1.0"

__all__ = [
    # Storage
    'ActivityQuery', 'ActivityStore', 'SnapshotStore', 'PreferenceStore', 'PlannedWorkoutStore',
    'Activity', 'AthletePreferences', 'FitnessSnapshot', 'PlannedWorkout', 'Provider',
    'InMemoryStorage',

    # Analytics
    'estimate_stress', 'estimate_stress_breakdown',
    'calculate_ctl', 'calculate_atl', 'calculate_tsb', 'get_week_start',
    'compute_ride_analytics', 'analyze_activity',
    'estimate_dynamic_ftp', 'track_mmp_progression',
    'calculate_training_monotony_strain', 'score_workout_execution',

    # Services
    'SnapshotService', 'BackfillResult', 'DeduplicationService', 'DuplicateVerdict',
    'FitnessHistoryService',

    # Exceptions
    'PeakLoadError', 'StorageError', 'ActivityNotFoundError',
]
