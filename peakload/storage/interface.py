#!/usr/bin/env python3
"""
Storage Layer Abstract Interface - Separates training-load logic from storage implementation

Orchestration services receive store implementations explicitly; nothing in
the package holds a module-level client. Upserts are modelled as
find-by-key then create-or-replace inside the store; atomicity of that
sequence is the store's responsibility.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import List, Optional

from .model import Activity, AthletePreferences, FitnessSnapshot, PlannedWorkout
from ..exceptions import StorageError


class ActivityQuery:
    """Activity query filter"""

    def __init__(self, athlete_id: str):
        self.athlete_id = athlete_id
        self.start = None
        self.end = None
        self.end_inclusive = False
        self.include_hidden = True
        self.canonical_only = False
        self.min_distance = None
        self.max_distance = None
        self.ascending = True
        self.limit = None

    def add_date_range(self, start: datetime = None, end: datetime = None) -> "ActivityQuery":
        """Restrict to start_time in [start, end)"""
        self.start = start
        self.end = end
        self.end_inclusive = False
        return self

    def add_start_window(self, center: datetime, seconds: float) -> "ActivityQuery":
        """Restrict to start_time within ±seconds of center, both ends inclusive"""
        self.start = center - timedelta(seconds=seconds)
        self.end = center + timedelta(seconds=seconds)
        self.end_inclusive = True
        return self

    def exclude_hidden(self) -> "ActivityQuery":
        """Drop activities the athlete has hidden"""
        self.include_hidden = False
        return self

    def exclude_duplicates(self) -> "ActivityQuery":
        """Keep only canonical activities"""
        self.canonical_only = True
        return self

    def add_distance_range(self, min_distance: float = None, max_distance: float = None) -> "ActivityQuery":
        """Restrict to distance in [min_distance, max_distance]"""
        self.min_distance = min_distance
        self.max_distance = max_distance
        return self

    def add_sort(self, ascending: bool = True) -> "ActivityQuery":
        """Sort by start_time"""
        self.ascending = ascending
        return self

    def set_limit(self, limit: int) -> "ActivityQuery":
        self.limit = limit
        return self

    def matches(self, activity: Activity) -> bool:
        """Whether an activity satisfies this filter"""
        if activity.athlete_id != self.athlete_id:
            return False
        if not self.include_hidden and activity.is_hidden:
            return False
        if self.canonical_only and activity.duplicate_of is not None:
            return False
        if self.start is not None and activity.start_time < self.start:
            return False
        if self.end is not None:
            if activity.start_time > self.end or (activity.start_time == self.end and not self.end_inclusive):
                return False
        if self.min_distance is not None or self.max_distance is not None:
            if activity.distance is None:
                return False
            if self.min_distance is not None and activity.distance < self.min_distance:
                return False
            if self.max_distance is not None and activity.distance > self.max_distance:
                return False
        return True


class ActivityStore(ABC):
    """Activity storage interface"""

    @abstractmethod
    def search_activities(self, query: ActivityQuery) -> List[Activity]:
        """Activities matching the query, ordered by start_time"""
        pass

    @abstractmethod
    def get_activity(self, activity_id: str) -> Optional[Activity]:
        """Activity by canonical id"""
        pass

    @abstractmethod
    def upsert_activity(self, activity: Activity) -> Activity:
        """Create or replace by canonical id"""
        pass

    def earliest_activity(self, athlete_id: str) -> Optional[Activity]:
        """Oldest visible activity for an athlete"""
        query = ActivityQuery(athlete_id).exclude_hidden().add_sort(ascending=True).set_limit(1)
        found = self.search_activities(query)
        return found[0] if found else None


class SnapshotStore(ABC):
    """Fitness snapshot storage interface"""

    @abstractmethod
    def upsert_snapshot(self, snapshot: FitnessSnapshot) -> FitnessSnapshot:
        """Create or replace by (athlete_id, snapshot_week)"""
        pass

    @abstractmethod
    def get_snapshot(self, athlete_id: str, snapshot_week: date) -> Optional[FitnessSnapshot]:
        pass

    @abstractmethod
    def list_snapshots(self, athlete_id: str, since: Optional[date] = None,
                       until: Optional[date] = None) -> List[FitnessSnapshot]:
        """Snapshots for an athlete, newest week first"""
        pass


class PreferenceStore(ABC):
    """Athlete preference lookup"""

    @abstractmethod
    def get_preferences(self, athlete_id: str) -> Optional[AthletePreferences]:
        pass


class PlannedWorkoutStore(ABC):
    """Planned workout lookup"""

    @abstractmethod
    def find_for_activities(self, activity_ids: List[str]) -> List[PlannedWorkout]:
        """Planned workouts completed by any of the given activities"""
        pass


__all__ = [
    "ActivityQuery",
    "ActivityStore",
    "SnapshotStore",
    "PreferenceStore",
    "PlannedWorkoutStore",
    "StorageError",
]
