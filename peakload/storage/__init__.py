#!/usr/bin/env python3
"""
Storage Module - Storage layer abstraction and implementation
"""

from .interface import (
    ActivityQuery,
    ActivityStore,
    SnapshotStore,
    PreferenceStore,
    PlannedWorkoutStore,
    StorageError
)
from .model import (
    Activity,
    AthletePreferences,
    FitnessSnapshot,
    PlannedWorkout,
    Provider
)
from .memory import InMemoryStorage

__all__ = [
    'ActivityQuery',
    'ActivityStore',
    'SnapshotStore',
    'PreferenceStore',
    'PlannedWorkoutStore',
    'StorageError',
    'Activity',
    'AthletePreferences',
    'FitnessSnapshot',
    'PlannedWorkout',
    'Provider',
    'InMemoryStorage'
]
