#!/usr/bin/env python3
"""
Test suite for cross-provider duplicate detection and resolution.
"""

from datetime import datetime, timedelta, timezone

import pytest

from peakload.config import DedupConfig
from peakload.exceptions import ActivityNotFoundError, ValidationError
from peakload.services import DeduplicationService

from .factories import ATHLETE_ID, NOW, make_activity


START = datetime(2025, 6, 14, 7, 0, tzinfo=timezone.utc)


@pytest.fixture
def service(storage, clock):
    return DeduplicationService(storage, DedupConfig(), clock=clock)


def stored(storage, **fields):
    activity = make_activity(fields.pop("start", START), **fields)
    storage.upsert_activity(activity)
    return activity


class TestDuplicateDetection:
    """Matching incoming reports against canonical activities"""

    def test_higher_priority_provider_takes_over(self, storage, service):
        existing = stored(storage, provider="strava", provider_activity_id="s-1")
        verdict = service.check_for_duplicate(
            ATHLETE_ID, START + timedelta(minutes=2), 30150, "garmin", "g-1")

        assert verdict.is_duplicate is True
        assert verdict.existing_activity.id == existing.id
        assert verdict.should_takeover is True
        assert verdict.should_merge is False
        assert existing.id in verdict.reason

    def test_lower_priority_provider_merges(self, storage, service):
        stored(storage, provider="garmin", provider_activity_id="g-1")
        verdict = service.check_for_duplicate(ATHLETE_ID, START, 30000, "Strava", "s-1")
        assert verdict.is_duplicate is True
        assert verdict.should_takeover is False
        assert verdict.should_merge is True

    def test_equal_priority_merges(self, storage, service):
        stored(storage, provider="strava", provider_activity_id="s-1")
        verdict = service.check_for_duplicate(ATHLETE_ID, START, 30000, "strava", "s-2")
        assert verdict.should_merge is True

    @pytest.mark.parametrize("offset, expected", [(300, True), (-300, True), (301, False)])
    def test_time_window_bounds(self, storage, service, offset, expected):
        stored(storage, provider="strava")
        verdict = service.check_for_duplicate(
            ATHLETE_ID, START + timedelta(seconds=offset), 30000, "garmin", "g-1")
        assert verdict.is_duplicate is expected

    @pytest.mark.parametrize("existing_distance, incoming_distance, expected", [
        (30000, 30300, True),    # 1% of 30 km
        (30000, 30400, False),
        (5000, 5100, True),      # 100 m floor
        (5000, 5150, False),
    ])
    def test_distance_tolerance(self, storage, service, existing_distance, incoming_distance, expected):
        stored(storage, provider="strava", distance=existing_distance)
        verdict = service.check_for_duplicate(ATHLETE_ID, START, incoming_distance, "garmin", "g-1")
        assert verdict.is_duplicate is expected

    def test_same_provider_record_is_not_its_own_duplicate(self, storage, service):
        stored(storage, provider="garmin", provider_activity_id="12345")
        verdict = service.check_for_duplicate(ATHLETE_ID, START, 30000, "garmin", 12345)
        assert verdict.is_duplicate is False

    def test_missing_inputs_are_never_duplicates(self, storage, service):
        stored(storage, provider="strava")
        assert service.check_for_duplicate(ATHLETE_ID, None, 30000, "garmin").is_duplicate is False
        assert service.check_for_duplicate(ATHLETE_ID, START, None, "garmin").is_duplicate is False
        assert service.check_for_duplicate(ATHLETE_ID, START, 0, "garmin").is_duplicate is False

    def test_linked_duplicates_are_not_candidates(self, storage, service):
        stored(storage, provider="strava", duplicate_of="canonical-id")
        verdict = service.check_for_duplicate(ATHLETE_ID, START, 30000, "garmin", "g-1")
        assert verdict.is_duplicate is False

    def test_other_athletes_are_ignored(self, storage, service):
        stored(storage, provider="strava", athlete_id="someone-else")
        verdict = service.check_for_duplicate(ATHLETE_ID, START, 30000, "garmin", "g-1")
        assert verdict.is_duplicate is False

    def test_naive_start_time_read_as_utc(self, storage, service):
        existing = stored(storage, provider="strava", provider_activity_id="s-1")
        verdict = service.check_for_duplicate(ATHLETE_ID, datetime(2025, 6, 14, 7, 2), 30000, "garmin", "g-1")

        assert verdict.is_duplicate is True
        assert verdict.existing_activity.id == existing.id
        assert verdict.should_takeover is True


class TestTakeover:
    """Provider takeover of a canonical activity"""

    def test_takeover_keeps_id_and_records_history(self, storage, service):
        existing = stored(storage, provider="strava", provider_activity_id="s-1", name="Morning Ride",
                          map_summary_polyline="abc")
        incoming = make_activity(START + timedelta(minutes=1), provider="garmin", provider_activity_id="g-1",
                                 average_watts=210, kilojoules=760, tss=85, raw_data={"fit_file": "g-1.fit"})

        updated = service.takeover(existing.id, incoming, "garmin", "g-1")

        assert updated.id == existing.id
        assert updated.provider == "garmin"
        assert updated.provider_activity_id == "g-1"
        assert updated.start_time == START + timedelta(minutes=1)
        assert updated.average_watts == 210
        assert updated.kilojoules == 760
        assert updated.tss == 85
        # fields the new source lacks keep their existing values
        assert updated.name == "Morning Ride"
        assert updated.map_summary_polyline == "abc"

        raw = updated.raw_data
        assert raw["fit_file"] == "g-1.fit"
        assert raw["original_provider"] == "strava"
        assert raw["takeover_history"] == [{
            "from_provider": "strava",
            "from_provider_activity_id": "s-1",
            "to_provider": "garmin",
            "to_provider_activity_id": "g-1",
            "timestamp": NOW.isoformat(),
        }]
        assert storage.get_activity(existing.id).provider == "garmin"

    def test_repeated_takeover_appends_history(self, storage, service):
        existing = stored(storage, provider="manual", provider_activity_id="m-1")
        service.takeover(existing.id, make_activity(START, provider="strava"), "strava", "s-1")
        updated = service.takeover(existing.id, make_activity(START, provider="garmin"), "garmin", "g-1")

        history = updated.raw_data["takeover_history"]
        assert [h["to_provider"] for h in history] == ["strava", "garmin"]
        assert updated.raw_data["original_provider"] == "manual"

    def test_unknown_activity(self, service):
        with pytest.raises(ActivityNotFoundError):
            service.takeover("missing", make_activity(START), "garmin", "g-1")


class TestMerge:
    """Filling gaps from lower-priority reports"""

    def test_merge_fills_only_missing_fields(self, storage, service):
        existing = stored(storage, provider="garmin", average_watts=220)
        incoming = make_activity(START, provider="strava", average_watts=180, average_heartrate=150,
                                 max_heartrate=175, average_cadence=88, map_summary_polyline="xyz",
                                 raw_data={"kudos": 3})

        updated = service.merge(existing.id, incoming, "strava")

        assert updated.average_watts == 220
        assert updated.map_summary_polyline == "xyz"
        assert updated.average_heartrate == 150
        assert updated.max_heartrate == 175
        assert updated.average_cadence == 88
        assert updated.provider == "garmin"
        assert updated.raw_data["merged_providers"] == ["garmin", "strava"]
        assert updated.raw_data["strava_data"] == {"kudos": 3}

    def test_merge_tracks_each_provider_once(self, storage, service):
        existing = stored(storage, provider="garmin")
        service.merge(existing.id, make_activity(START, provider="strava"), "strava")
        updated = service.merge(existing.id, make_activity(START, provider="strava"), "strava")
        assert updated.raw_data["merged_providers"] == ["garmin", "strava"]

    def test_unknown_activity(self, service):
        with pytest.raises(ActivityNotFoundError):
            service.merge("missing", make_activity(START), "strava")


class TestResolve:
    """Created, takeover and merged outcomes"""

    def test_new_activity_is_created(self, storage, service):
        incoming = make_activity(START, provider="garmin", provider_activity_id="g-1")
        result = service.resolve(ATHLETE_ID, incoming)
        assert result.action == "created"
        assert storage.get_activity(incoming.id) is not None

    def test_garmin_after_strava_takes_over(self, storage, service):
        existing = stored(storage, provider="strava", provider_activity_id="s-1")
        incoming = make_activity(START + timedelta(minutes=2), provider="garmin",
                                 provider_activity_id="g-1", distance=30100)

        result = service.resolve(ATHLETE_ID, incoming)

        assert result.action == "takeover"
        assert result.activity.id == existing.id
        assert result.to_dict()["provider"] == "garmin"
        assert len(storage.activities) == 1

    def test_strava_after_garmin_merges(self, storage, service):
        existing = stored(storage, provider="garmin", provider_activity_id="g-1")
        incoming = make_activity(START, provider="strava", provider_activity_id="s-1")

        result = service.resolve(ATHLETE_ID, incoming)

        assert result.action == "merged"
        assert result.activity.id == existing.id
        assert len(storage.activities) == 1


class TestDuplicateLinks:
    """Manual links and the batch scan"""

    def test_mark_and_unmark(self, storage, service):
        primary = stored(storage, provider="garmin")
        duplicate = stored(storage, provider="strava")

        marked = service.mark_as_duplicate(duplicate.id, primary.id)
        assert marked.duplicate_of == primary.id
        assert storage.get_activity(duplicate.id).is_canonical is False

        unmarked = service.unmark_duplicate(duplicate.id)
        assert unmarked.duplicate_of is None

    def test_cannot_mark_self(self, storage, service):
        activity = stored(storage)
        with pytest.raises(ValidationError):
            service.mark_as_duplicate(activity.id, activity.id)

    def test_mark_unknown(self, service):
        with pytest.raises(ActivityNotFoundError):
            service.mark_as_duplicate("missing", "other")

    def test_scan_links_group_to_highest_priority(self, storage, service):
        strava = stored(storage, provider="strava", provider_activity_id="s-1")
        garmin = stored(storage, provider="garmin", provider_activity_id="g-1",
                        start=START + timedelta(minutes=1), distance=30100)
        wahoo = stored(storage, provider="wahoo", provider_activity_id="w-1",
                       start=START + timedelta(minutes=3), distance=29900)
        other_day = stored(storage, provider="strava", provider_activity_id="s-2",
                           start=START + timedelta(days=1))

        stats = service.find_and_mark_duplicates(ATHLETE_ID)

        assert stats == {"found": 2, "marked": 2, "errors": 0}
        assert storage.get_activity(garmin.id).duplicate_of is None
        assert storage.get_activity(strava.id).duplicate_of == garmin.id
        assert storage.get_activity(wahoo.id).duplicate_of == garmin.id
        assert storage.get_activity(other_day.id).duplicate_of is None

    def test_scan_with_single_activity(self, storage, service):
        stored(storage)
        assert service.find_and_mark_duplicates(ATHLETE_ID) == {"found": 0, "marked": 0, "errors": 0}
