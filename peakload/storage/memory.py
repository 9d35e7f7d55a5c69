#!/usr/bin/env python3
"""
In-memory storage backend

Implements every store interface over plain dictionaries. Used by the CLI
and the test suite; production deployments supply their own database-backed
implementations of the same interfaces.
"""
import threading
from datetime import date
from typing import Dict, List, Optional, Tuple

from .interface import (
    ActivityQuery, ActivityStore, SnapshotStore, PreferenceStore, PlannedWorkoutStore
)
from .model import Activity, AthletePreferences, FitnessSnapshot, PlannedWorkout
from ..utils import get_logger


logger = get_logger(__name__)


class InMemoryStorage(ActivityStore, SnapshotStore, PreferenceStore, PlannedWorkoutStore):
    """Dictionary-backed implementation of all PeakLoad stores"""

    def __init__(self):
        self._lock = threading.RLock()
        self.activities: Dict[str, Activity] = {}
        self.snapshots: Dict[Tuple[str, date], FitnessSnapshot] = {}
        self.preferences: Dict[str, AthletePreferences] = {}
        self.planned_workouts: Dict[str, PlannedWorkout] = {}

    # ---- activities ----

    def search_activities(self, query: ActivityQuery) -> List[Activity]:
        with self._lock:
            found = [a.model_copy(deep=True) for a in self.activities.values() if query.matches(a)]
        found.sort(key=lambda a: a.start_time, reverse=not query.ascending)
        if query.limit is not None:
            found = found[:query.limit]
        return found

    def get_activity(self, activity_id: str) -> Optional[Activity]:
        with self._lock:
            activity = self.activities.get(activity_id)
            return activity.model_copy(deep=True) if activity else None

    def upsert_activity(self, activity: Activity) -> Activity:
        with self._lock:
            self.activities[activity.id] = activity.model_copy(deep=True)
        logger.debug(f"Stored activity {activity.id} ({activity.provider})")
        return activity

    def add_activities(self, activities: List[Activity]) -> int:
        """Bulk load activities, returning the number stored"""
        for activity in activities:
            self.upsert_activity(activity)
        return len(activities)

    # ---- snapshots ----

    def upsert_snapshot(self, snapshot: FitnessSnapshot) -> FitnessSnapshot:
        with self._lock:
            self.snapshots[snapshot.key] = snapshot.model_copy(deep=True)
        return snapshot

    def get_snapshot(self, athlete_id: str, snapshot_week: date) -> Optional[FitnessSnapshot]:
        with self._lock:
            snapshot = self.snapshots.get((athlete_id, snapshot_week))
            return snapshot.model_copy(deep=True) if snapshot else None

    def list_snapshots(self, athlete_id: str, since: Optional[date] = None,
                       until: Optional[date] = None) -> List[FitnessSnapshot]:
        with self._lock:
            found = [
                s.model_copy(deep=True) for (owner, week), s in self.snapshots.items()
                if owner == athlete_id
                and (since is None or week >= since)
                and (until is None or week <= until)
            ]
        found.sort(key=lambda s: s.snapshot_week, reverse=True)
        return found

    # ---- preferences ----

    def set_preferences(self, preferences: AthletePreferences) -> None:
        with self._lock:
            self.preferences[preferences.athlete_id] = preferences

    def get_preferences(self, athlete_id: str) -> Optional[AthletePreferences]:
        with self._lock:
            return self.preferences.get(athlete_id)

    # ---- planned workouts ----

    def add_planned_workout(self, workout: PlannedWorkout) -> None:
        with self._lock:
            self.planned_workouts[workout.id] = workout

    def find_for_activities(self, activity_ids: List[str]) -> List[PlannedWorkout]:
        wanted = set(activity_ids)
        with self._lock:
            return [w for w in self.planned_workouts.values() if w.activity_id in wanted]
