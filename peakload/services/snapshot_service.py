#!/usr/bin/env python3
"""
Snapshot Service - Weekly fitness snapshot computation and backfill

Builds one FitnessSnapshot per athlete-week from the canonical activity
history: CTL/ATL/TSB from the 90 days of stress ending with the week, weekly
volume totals, load and fitness trends, and the longitudinal analytics
(dynamic FTP, monotony and strain, best efforts, execution scores).
Snapshots are upserted by (athlete_id, snapshot_week), so recomputing a week
replaces its row.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..analytics.load import (
    DateLike, build_daily_stress_series, calculate_atl, calculate_ctl, calculate_tsb,
    compute_fitness_trend, compute_load_trend, get_week_start
)
from ..analytics.longitudinal import (
    calculate_training_monotony_strain, collect_best_efforts, estimate_dynamic_ftp,
    score_workout_execution
)
from ..config import Settings, get_settings
from ..exceptions import snapshot_error
from ..storage.interface import (
    ActivityQuery, ActivityStore, PlannedWorkoutStore, PreferenceStore, SnapshotStore
)
from ..storage.model import Activity, FitnessSnapshot, utc_now
from ..utils import get_service_logger


PEAK_20MIN_MIN_SECONDS = 1200
PEAK_20MIN_MAX_SECONDS = 5400


@dataclass
class BackfillResult:
    """Outcome of a snapshot backfill"""
    success: bool
    snapshots_created: int = 0
    weeks_processed: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'snapshots_created': self.snapshots_created,
            'weeks_processed': self.weeks_processed,
            'errors': self.errors,
            'message': self.message,
        }


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _round_mean(values: Sequence[float], digits: int = 2) -> Optional[float]:
    if not values:
        return None
    return round(sum(values) / len(values), digits)


class SnapshotService:
    """High-level service for weekly fitness snapshots"""

    def __init__(self, activities: ActivityStore, snapshots: SnapshotStore,
                 preferences: PreferenceStore,
                 planned_workouts: Optional[PlannedWorkoutStore] = None,
                 settings: Optional[Settings] = None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize snapshot service

        Args:
            activities: Activity store
            snapshots: Snapshot store receiving the upserts
            preferences: Athlete preference lookup (FTP, heart rate)
            planned_workouts: Optional planned workout lookup for execution scores
            settings: Application settings (defaults to the loaded settings)
            clock: Source of "now", for backfill windows
        """
        self.activities = activities
        self.snapshots = snapshots
        self.preferences = preferences
        self.planned_workouts = planned_workouts
        self.settings = settings or get_settings()
        self.clock = clock
        self.logger = get_service_logger("snapshot_service")

    def _window_activities(self, athlete_id: str, start: date, end: date) -> List[Activity]:
        query = (
            ActivityQuery(athlete_id)
            .add_date_range(_day_start(start), _day_start(end))
            .exclude_hidden()
            .exclude_duplicates()
            .add_sort(ascending=True)
        )
        return self.activities.search_activities(query)

    def build_snapshot(self, athlete_id: str, week_start: DateLike) -> FitnessSnapshot:
        """
        Compute a weekly snapshot without persisting it

        Args:
            athlete_id: Athlete identifier
            week_start: Any date in the target week

        Returns:
            FitnessSnapshot for the week
        """
        week = get_week_start(week_start)
        week_end = week + timedelta(days=7)
        history_days = self.settings.load.history_days
        if history_days < 7:
            raise snapshot_error("History window must cover at least one week", history_days=history_days)
        history_start = week_end - timedelta(days=history_days)

        activities = self._window_activities(athlete_id, history_start, week_end)
        daily = build_daily_stress_series(activities, week_end, history_days)

        ctl = calculate_ctl(daily, self.settings.load.ctl_time_constant_days)
        atl = calculate_atl(daily[-7:], self.settings.load.atl_time_constant_days)
        tsb = calculate_tsb(ctl, atl)

        week_activities = [a for a in activities if week <= a.start_date < week_end]
        weekly_tss = sum(daily[-7:])

        prefs = self.preferences.get_preferences(athlete_id)
        ftp = prefs.ftp if prefs else None

        snapshot = FitnessSnapshot(
            athlete_id=athlete_id,
            snapshot_week=week,
            ctl=ctl,
            atl=atl,
            tsb=tsb,
            ftp=ftp,
            ftp_source="user_preferences" if ftp else None,
            weekly_tss=int(round(weekly_tss)),
            weekly_hours=round(sum((a.moving_time or 0) for a in week_activities) / 3600, 2),
            weekly_ride_count=sum(1 for a in week_activities if not a.is_running),
            weekly_run_count=sum(1 for a in week_activities if a.is_running),
            weekly_distance_km=round(sum((a.distance or 0) for a in week_activities) / 1000, 2),
            weekly_elevation_m=int(round(sum((a.total_elevation_gain or 0) for a in week_activities))),
            avg_normalized_power=self._average_normalized_power(week_activities),
            peak_20min_power=self._peak_20min_power(week_activities),
            load_trend=compute_load_trend(daily),
            fitness_trend=compute_fitness_trend(ctl, weekly_tss / 7),
            activities_analyzed=len(activities),
            computed_at=self.clock(),
        )

        self._apply_longitudinal(snapshot, activities, daily, ftp)
        self._apply_ride_means(snapshot, week_activities)
        self._apply_execution_scores(snapshot, week_activities)
        return snapshot

    @staticmethod
    def _average_normalized_power(activities: List[Activity]) -> Optional[int]:
        values = [a.normalized_power for a in activities if a.normalized_power and a.normalized_power > 0]
        if not values:
            return None
        return int(round(sum(values) / len(values)))

    @staticmethod
    def _peak_20min_power(activities: List[Activity]) -> Optional[float]:
        # highest average power among 20-90 minute activities
        candidates = [
            a.average_watts for a in activities
            if a.average_watts and a.average_watts > 0 and a.moving_time
            and PEAK_20MIN_MIN_SECONDS <= a.moving_time <= PEAK_20MIN_MAX_SECONDS
        ]
        return max(candidates) if candidates else None

    def _apply_longitudinal(self, snapshot: FitnessSnapshot, activities: List[Activity],
                            daily: List[float], ftp: Optional[float]) -> None:
        ftp_estimate = estimate_dynamic_ftp(activities, ftp)
        if ftp_estimate:
            snapshot.estimated_ftp = ftp_estimate["estimated_ftp"]
            snapshot.estimated_ftp_method = ftp_estimate["method"]
            snapshot.estimated_ftp_confidence = ftp_estimate["confidence"]
            snapshot.best_efforts = ftp_estimate["best_efforts"]
        else:
            snapshot.best_efforts = collect_best_efforts(activities)["best_efforts"]

        monotony = calculate_training_monotony_strain(daily)
        if monotony:
            snapshot.training_monotony = monotony["monotony"]
            snapshot.training_strain = monotony["strain"]
            snapshot.overtraining_risk = monotony["risk"]

    @staticmethod
    def _apply_ride_means(snapshot: FitnessSnapshot, week_activities: List[Activity]) -> None:
        efficiency = []
        variability = []
        for activity in week_activities:
            analytics = activity.ride_analytics or {}
            if analytics.get("efficiency_factor"):
                efficiency.append(analytics["efficiency_factor"])
            if analytics.get("variability_index"):
                variability.append(analytics["variability_index"])
        snapshot.avg_efficiency_factor = _round_mean(efficiency)
        snapshot.avg_variability_index = _round_mean(variability)

    def _apply_execution_scores(self, snapshot: FitnessSnapshot, week_activities: List[Activity]) -> None:
        if self.planned_workouts is None or not week_activities:
            return

        by_id = {a.id: a for a in week_activities}
        scores = []
        for workout in self.planned_workouts.find_for_activities(list(by_id)):
            result = score_workout_execution(workout, by_id.get(workout.activity_id))
            if result and result["was_completed"]:
                scores.append(result["overall_score"])
        if scores:
            snapshot.avg_execution_score = int(round(sum(scores) / len(scores)))

    def compute_weekly_snapshot(self, athlete_id: str, week_start: DateLike) -> FitnessSnapshot:
        """
        Compute and upsert the snapshot for one week

        Storage errors propagate to the caller.
        """
        snapshot = self.build_snapshot(athlete_id, week_start)
        self.snapshots.upsert_snapshot(snapshot)
        self.logger.info(
            "📊 Snapshot stored",
            athlete_id=athlete_id,
            week=snapshot.snapshot_week.isoformat(),
            ctl=snapshot.ctl,
            atl=snapshot.atl,
            tsb=snapshot.tsb,
            weekly_tss=snapshot.weekly_tss,
        )
        return snapshot

    def backfill_snapshots(self, athlete_id: str, weeks_back: int = 52) -> BackfillResult:
        """
        Recompute snapshots for past weeks, most recent first

        The number of weeks is limited by the age of the athlete's oldest
        visible activity. A failing week is recorded and the backfill continues.

        Args:
            athlete_id: Athlete identifier
            weeks_back: Upper bound on weeks to process

        Returns:
            BackfillResult with created count and per-week errors
        """
        log = self.logger.bind(athlete_id=athlete_id)
        log.info("📊 Starting snapshot backfill", weeks_back=weeks_back)

        oldest = self.activities.earliest_activity(athlete_id)
        if oldest is None:
            log.info("📋 No visible activities found for backfill")
            return BackfillResult(success=True, message="No activities found")

        now = self.clock()
        weeks_available = int((now - oldest.start_time).total_seconds() // (7 * 24 * 3600))
        weeks = max(0, min(weeks_back, weeks_available))

        created = 0
        errors: List[Dict[str, str]] = []
        for i in range(weeks):
            week = get_week_start(now - timedelta(days=7 * i))
            try:
                self.compute_weekly_snapshot(athlete_id, week)
                created += 1
            except Exception as e:
                log.error("❌ Snapshot failed", week=week.isoformat(), error=str(e))
                errors.append({"week": week.isoformat(), "error": str(e)})

        log.info("✅ Backfill completed", snapshots_created=created, weeks_processed=weeks,
                 errors=len(errors))
        return BackfillResult(
            success=True,
            snapshots_created=created,
            weeks_processed=weeks,
            errors=errors,
        )

    def update_snapshot_for_activity(self, athlete_id: str, activity_date: DateLike) -> FitnessSnapshot:
        """Recompute the week containing a newly imported activity"""
        return self.compute_weekly_snapshot(athlete_id, get_week_start(activity_date))

    def compute_current_week(self, athlete_id: str) -> FitnessSnapshot:
        """Recompute the snapshot for the week containing today"""
        return self.compute_weekly_snapshot(athlete_id, get_week_start(self.clock()))

    def compute_weekly_for_athletes(self, athlete_ids: Sequence[str]) -> Dict[str, Any]:
        """
        Recompute the current week for many athletes

        Returns:
            Counts of processed and failed athletes, with failure details
        """
        self.logger.info("🔄 Weekly snapshot run", athletes=len(athlete_ids))
        processed = 0
        failures: List[Dict[str, str]] = []
        for athlete_id in athlete_ids:
            try:
                self.compute_current_week(athlete_id)
                processed += 1
            except Exception as e:
                self.logger.error("❌ Weekly snapshot failed", athlete_id=athlete_id, error=str(e))
                failures.append({"athlete_id": athlete_id, "error": str(e)})

        self.logger.info("✅ Weekly snapshot run completed", processed=processed, failed=len(failures))
        return {
            "processed": processed,
            "failed": len(failures),
            "errors": failures,
        }
