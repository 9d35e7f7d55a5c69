#!/usr/bin/env python3
"""
Deduplication Service - Cross-provider duplicate detection and resolution

The same real-world ride often arrives from several providers (a Garmin
device syncing to both Garmin Connect and Strava). Reports starting within
five minutes of each other whose distances agree within max(1%, 100 m) are
treated as the same ride. Provider priority decides the outcome:

- takeover: the incoming provider ranks strictly higher, so it becomes the
  canonical record's source while the canonical id is kept
- merge: otherwise, the incoming report only fills fields the canonical
  record is missing

Resolution is read-detect-write; the host must serialize writes to the same
canonical record.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..config import DedupConfig, get_dedup_config
from ..exceptions import activity_not_found, validation_error, PeakLoadError
from ..storage.interface import ActivityQuery, ActivityStore
from ..storage.model import Activity, utc_now
from ..utils import get_service_logger


# Fields replaced on takeover, falling back to the existing value when the new source lacks one
TAKEOVER_FIELDS = [
    "name",
    "activity_type",
    "start_time",
    "distance",
    "moving_time",
    "elapsed_time",
    "total_elevation_gain",
    "average_speed",
    "max_speed",
    "average_watts",
    "max_watts",
    "kilojoules",
    "normalized_power",
    "intensity_factor",
    "average_heartrate",
    "max_heartrate",
    "average_cadence",
    "calories",
    "tss",
    "map_summary_polyline",
    "power_curve_summary",
]


@dataclass
class DuplicateVerdict:
    """Whether an incoming report matches an existing canonical activity"""
    is_duplicate: bool = False
    existing_activity: Optional[Activity] = None
    reason: Optional[str] = None
    should_takeover: bool = False
    should_merge: bool = False


@dataclass
class ResolutionResult:
    """What happened to an incoming report"""
    action: str
    activity: Activity
    verdict: DuplicateVerdict = field(default_factory=DuplicateVerdict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'activity_id': self.activity.id,
            'provider': self.activity.provider,
            'reason': self.verdict.reason,
        }


def _prefer(new_value: Any, existing_value: Any) -> Any:
    if new_value is None or (isinstance(new_value, (str, dict)) and not new_value):
        return existing_value
    return new_value


class DeduplicationService:
    """Detects and resolves duplicate activity reports across providers"""

    def __init__(self, activities: ActivityStore, config: Optional[DedupConfig] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.activities = activities
        self.config = config or get_dedup_config()
        self.clock = clock
        self.logger = get_service_logger("dedup_service")

    def provider_priority(self, provider: Optional[str]) -> int:
        return self.config.priority_for(provider)

    def check_for_duplicate(self, athlete_id: str, start_time: Optional[datetime],
                            distance: Optional[float], provider: Optional[str],
                            provider_activity_id: Optional[str] = None) -> DuplicateVerdict:
        """
        Look for an existing canonical activity matching an incoming report

        Args:
            athlete_id: Owning athlete
            start_time: Incoming start time
            distance: Incoming distance in meters
            provider: Incoming provider name
            provider_activity_id: Incoming provider-native id, for the self-match guard

        Returns:
            DuplicateVerdict; not a duplicate when start time or distance is missing
        """
        if not start_time or not distance:
            return DuplicateVerdict()
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)

        tolerance = self.config.distance_tolerance(distance)
        query = (
            ActivityQuery(athlete_id)
            .add_start_window(start_time, self.config.time_window_seconds)
            .add_distance_range(distance - tolerance, distance + tolerance)
            .exclude_duplicates()
            .add_sort(ascending=True)
            .set_limit(self.config.candidate_limit)
        )
        incoming_provider = (provider or "").lower()
        incoming_id = None if provider_activity_id is None else str(provider_activity_id)

        candidates = [
            a for a in self.activities.search_activities(query)
            if not (a.provider == incoming_provider and a.provider_activity_id == incoming_id)
        ]
        if not candidates:
            return DuplicateVerdict()

        existing = candidates[0]
        new_priority = self.provider_priority(incoming_provider)
        existing_priority = self.provider_priority(existing.provider)
        should_takeover = new_priority > existing_priority

        self.logger.info(
            "🔄 Duplicate detected",
            athlete_id=athlete_id,
            incoming_provider=incoming_provider,
            existing_provider=existing.provider,
            existing_id=existing.id,
            decision="takeover" if should_takeover else "merge",
        )
        return DuplicateVerdict(
            is_duplicate=True,
            existing_activity=existing,
            reason=(
                f'Matches existing {existing.provider} activity "{existing.name}" '
                f"(ID: {existing.id}) - same time window and distance"
            ),
            should_takeover=should_takeover,
            should_merge=not should_takeover,
        )

    def _require(self, activity_id: str) -> Activity:
        activity = self.activities.get_activity(activity_id)
        if activity is None:
            raise activity_not_found(activity_id)
        return activity

    def takeover(self, existing_id: str, new_data: Activity, new_provider: str,
                 new_provider_activity_id: Optional[str] = None) -> Activity:
        """
        Make a higher-priority provider the source of an existing canonical activity

        The canonical id is kept. Metric fields come from the new source where
        present, and the switch is appended to raw_data["takeover_history"].

        Raises:
            ActivityNotFoundError: existing_id is unknown
        """
        existing = self._require(existing_id)
        old_provider = existing.provider
        old_provider_id = existing.provider_activity_id
        new_provider = (new_provider or "").lower()
        new_id = None if new_provider_activity_id is None else str(new_provider_activity_id)
        now = self.clock()

        updates = {name: _prefer(getattr(new_data, name), getattr(existing, name)) for name in TAKEOVER_FIELDS}
        history = list(existing.raw_data.get("takeover_history", []))
        history.append({
            "from_provider": old_provider,
            "from_provider_activity_id": old_provider_id,
            "to_provider": new_provider,
            "to_provider_activity_id": new_id,
            "timestamp": now.isoformat(),
        })
        raw_data = dict(new_data.raw_data)
        raw_data["takeover_history"] = history
        raw_data["original_provider"] = existing.raw_data.get("original_provider") or old_provider

        updates.update({
            "provider": new_provider,
            "provider_activity_id": new_id,
            "raw_data": raw_data,
            "updated_at": now,
        })
        updated = existing.model_copy(update=updates)
        self.activities.upsert_activity(updated)

        self.logger.info("✅ Activity takeover", activity_id=existing_id,
                         from_provider=old_provider, to_provider=new_provider)
        return updated

    def merge(self, existing_id: str, new_data: Activity, new_provider: str) -> Activity:
        """
        Fill fields the canonical activity is missing from a lower-priority report

        Populated fields are never overwritten. Contributing providers are
        tracked in raw_data["merged_providers"] and the new payload is kept
        under raw_data["<provider>_data"].

        Raises:
            ActivityNotFoundError: existing_id is unknown
        """
        existing = self._require(existing_id)
        new_provider = (new_provider or "").lower()
        updates: Dict[str, Any] = {}

        if not existing.map_summary_polyline and new_data.map_summary_polyline:
            updates["map_summary_polyline"] = new_data.map_summary_polyline
        if not existing.average_watts and new_data.average_watts:
            updates["average_watts"] = new_data.average_watts
        if not existing.average_heartrate and new_data.average_heartrate:
            updates["average_heartrate"] = new_data.average_heartrate
            if not existing.max_heartrate:
                updates["max_heartrate"] = new_data.max_heartrate
        if not existing.average_cadence and new_data.average_cadence:
            updates["average_cadence"] = new_data.average_cadence

        providers = list(existing.raw_data.get("merged_providers") or [existing.provider])
        if new_provider not in providers:
            providers.append(new_provider)

        raw_data = dict(existing.raw_data)
        raw_data["merged_providers"] = providers
        raw_data[f"{new_provider}_data"] = new_data.raw_data
        updates["raw_data"] = raw_data
        updates["updated_at"] = self.clock()

        updated = existing.model_copy(update=updates)
        self.activities.upsert_activity(updated)

        filled = sorted(k for k in updates if k not in ("raw_data", "updated_at"))
        self.logger.info("✅ Merged provider data", activity_id=existing_id,
                         provider=new_provider, filled=filled)
        return updated

    def resolve(self, athlete_id: str, incoming: Activity) -> ResolutionResult:
        """
        Check an incoming report and apply takeover, merge or create

        Returns:
            ResolutionResult naming the action and the resulting canonical activity
        """
        verdict = self.check_for_duplicate(
            athlete_id, incoming.start_time, incoming.distance,
            incoming.provider, incoming.provider_activity_id,
        )
        if not verdict.is_duplicate:
            self.activities.upsert_activity(incoming)
            return ResolutionResult("created", incoming, verdict)

        existing_id = verdict.existing_activity.id
        if verdict.should_takeover:
            activity = self.takeover(existing_id, incoming, incoming.provider, incoming.provider_activity_id)
            return ResolutionResult("takeover", activity, verdict)

        activity = self.merge(existing_id, incoming, incoming.provider)
        return ResolutionResult("merged", activity, verdict)

    def mark_as_duplicate(self, duplicate_id: str, primary_id: str) -> Activity:
        """Link an activity to the canonical record it duplicates"""
        if duplicate_id == primary_id:
            raise validation_error("An activity cannot duplicate itself", activity_id=duplicate_id)
        activity = self._require(duplicate_id)
        updated = activity.model_copy(update={"duplicate_of": primary_id, "updated_at": self.clock()})
        self.activities.upsert_activity(updated)
        self.logger.info("✅ Marked duplicate", activity_id=duplicate_id, primary_id=primary_id)
        return updated

    def unmark_duplicate(self, activity_id: str) -> Activity:
        """Make a duplicate activity canonical again"""
        activity = self._require(activity_id)
        updated = activity.model_copy(update={"duplicate_of": None, "updated_at": self.clock()})
        self.activities.upsert_activity(updated)
        self.logger.info("✅ Unmarked duplicate", activity_id=activity_id)
        return updated

    def find_and_mark_duplicates(self, athlete_id: str) -> Dict[str, int]:
        """
        Scan an athlete's canonical activities and link duplicate groups

        Within each group the highest-priority provider stays canonical and
        the rest get duplicate_of pointing at it.

        Returns:
            Counts of duplicates found, marked and failed
        """
        stats = {"found": 0, "marked": 0, "errors": 0}
        query = ActivityQuery(athlete_id).exclude_duplicates().add_sort(ascending=True)
        activities = self.activities.search_activities(query)
        if len(activities) < 2:
            return stats

        log = self.logger.bind(athlete_id=athlete_id)
        log.info("🔍 Scanning activities for duplicates", count=len(activities))

        window = self.config.time_window_seconds
        processed = set()
        for i, activity in enumerate(activities):
            if activity.id in processed:
                continue

            distance = activity.distance or 0
            tolerance = self.config.distance_tolerance(distance)
            group: List[Activity] = []
            for candidate in activities[i + 1:]:
                if candidate.id in processed:
                    continue
                gap = (candidate.start_time - activity.start_time).total_seconds()
                if gap > window:
                    break
                if abs(distance - (candidate.distance or 0)) <= tolerance:
                    group.append(candidate)

            if not group:
                continue

            stats["found"] += len(group)
            ranked = sorted([activity] + group, key=lambda a: -self.provider_priority(a.provider))
            primary = ranked[0]
            for duplicate in ranked[1:]:
                try:
                    self.mark_as_duplicate(duplicate.id, primary.id)
                    stats["marked"] += 1
                except PeakLoadError as e:
                    log.error("❌ Failed to mark duplicate", activity_id=duplicate.id, error=str(e))
                    stats["errors"] += 1
                processed.add(duplicate.id)
            processed.add(primary.id)

        log.info("✅ Duplicate scan complete", **stats)
        return stats
