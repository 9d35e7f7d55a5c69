#!/usr/bin/env python3
"""
Test suite for fitness history queries.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from peakload.services import FitnessHistoryService, SnapshotService
from peakload.exceptions import ValidationError
from peakload.services.history_service import (
    NO_HISTORY_MESSAGE, NO_HISTORY_SUGGESTION, fitness_verdict, form_label, summarize_power
)
from peakload.storage import FitnessSnapshot

from .factories import ATHLETE_ID, daily_rides, make_activity


CURRENT_WEEK = date(2025, 6, 16)


@pytest.fixture
def history(storage, clock, settings):
    snapshot_service = SnapshotService(storage, storage, storage, storage, settings=settings, clock=clock)
    return FitnessHistoryService(storage, snapshot_service)


def store_weeks(storage, ctl_values, hours=8.0, tsb=0):
    """Store one snapshot per value, the first being the current week"""
    for i, ctl in enumerate(ctl_values):
        storage.upsert_snapshot(FitnessSnapshot(
            athlete_id=ATHLETE_ID,
            snapshot_week=CURRENT_WEEK - timedelta(weeks=i),
            ctl=ctl,
            atl=ctl - tsb,
            tsb=tsb,
            weekly_hours=hours,
            weekly_tss=ctl * 7,
            weekly_ride_count=5,
        ))


def store_week(storage, week, ctl, hours=8.0, tss=None):
    storage.upsert_snapshot(FitnessSnapshot(
        athlete_id=ATHLETE_ID, snapshot_week=week, ctl=ctl, atl=ctl,
        weekly_hours=hours, weekly_tss=ctl * 7 if tss is None else tss, weekly_ride_count=5,
    ))


class TestRecentTrend:
    """Last four weeks against the four before"""

    def test_improving(self, storage, history):
        store_weeks(storage, [60, 60, 60, 60, 50, 50, 50, 50])
        result = history.query(ATHLETE_ID)

        assert result["success"] is True
        assert result["trend"]["direction"] == "improving"
        assert result["trend"]["ctl_change_percent"] == 20
        assert result["trend"]["volume_change_percent"] == 0
        assert result["current"]["week"] == "2025-06-16"
        assert result["current"]["form"] == "balanced"
        assert result["weeks_analyzed"] == 8
        assert result["summary"].startswith("Fitness is improving. CTL +20% over last 4 weeks.")

    def test_declining(self, storage, history):
        store_weeks(storage, [40, 40, 40, 40, 50, 50, 50, 50])
        result = history.query(ATHLETE_ID)
        assert result["trend"]["direction"] == "declining"
        assert result["trend"]["ctl_change_percent"] == -20

    def test_single_week_is_stable(self, storage, history):
        store_weeks(storage, [45])
        result = history.query(ATHLETE_ID)
        assert result["trend"]["direction"] == "stable"
        assert result["trend"]["ctl_change_percent"] == 0

    def test_weeks_back_limits_window(self, storage, history):
        store_weeks(storage, [50] * 10)
        assert history.query(ATHLETE_ID, weeks_back=4)["weeks_analyzed"] == 4

    def test_empty_input(self):
        result = FitnessHistoryService.analyze_recent_trend([])
        assert result["success"] is False


class TestPeakFitness:
    """Highest-CTL week"""

    def test_peak_compared_with_current(self, storage, history):
        store_weeks(storage, [60, 62, 66, 70, 74, 78, 80, 72])
        result = history.query(ATHLETE_ID, query_type="peak_fitness")

        assert result["success"] is True
        assert result["peak"]["week"] == "2025-05-05"
        assert result["peak"]["ctl"] == 80
        assert result["peak"]["weeks_ago"] == 6
        assert result["current"] == {"ctl": 60, "percent_of_peak": 75}
        assert [w["ctl"] for w in result["top_fitness_weeks"]] == [80, 78, 74, 72, 70]
        assert "6 weeks ago" in result["summary"]

    def test_peak_this_week(self, storage, history):
        store_weeks(storage, [90, 80])
        result = history.find_peak_fitness(ATHLETE_ID)
        assert result["peak"]["weeks_ago"] == 0
        assert result["current"]["percent_of_peak"] == 100
        assert "this week" in result["summary"]

    def test_no_snapshots(self, history):
        assert history.find_peak_fitness(ATHLETE_ID)["success"] is False


class TestAutoBackfill:
    """History bootstrapping"""

    def test_backfills_when_no_snapshots(self, storage, history):
        storage.add_activities(daily_rides(date(2025, 1, 1), 160, tss=40))

        result = history.query(ATHLETE_ID, weeks_back=12)

        assert result["success"] is True
        assert result["weeks_analyzed"] == 12
        assert len(storage.list_snapshots(ATHLETE_ID)) == 24

    def test_no_history_at_all(self, history):
        result = history.query(ATHLETE_ID)
        assert result == {
            "success": False,
            "message": NO_HISTORY_MESSAGE,
            "suggestion": NO_HISTORY_SUGGESTION,
        }


class TestFormLabel:
    """Training stress balance labels"""

    @pytest.mark.parametrize("tsb, expected", [
        (6, "fresh"), (5, "balanced"), (-9, "balanced"), (-10, "fatigued"), (-30, "fatigued"),
    ])
    def test_labels(self, tsb, expected):
        assert form_label(tsb) == expected


def ride_at(day, **fields):
    return make_activity(datetime(day.year, day.month, day.day, 7, tzinfo=timezone.utc), **fields)


class TestPowerSummary:
    """Best power outputs over a period"""

    def test_fallback_buckets_by_duration(self):
        day = date(2025, 6, 10)
        summary = summarize_power([
            ride_at(day, average_watts=260, moving_time=1800, kilojoules=500),
            ride_at(day, average_watts=220, moving_time=5400, kilojoules=1200),
            ride_at(day, average_watts=180, moving_time=10800, kilojoules=2000),
            ride_at(day, average_watts=None, moving_time=3600, kilojoules=900),
        ])

        assert summary["activity_count"] == 3
        assert summary["best_power_short"] == 260
        assert summary["best_power_medium"] == 220
        assert summary["best_power_long"] == 180
        assert summary["total_hours"] == 5.0
        assert summary["kj_per_hour"] == 740
        assert summary["weighted_avg_watts"] == 200
        assert summary["peak_power"] is None
        assert summary["power_source"] == "estimated"
        assert (summary["short_effort_count"], summary["medium_effort_count"], summary["long_effort_count"]) == (1, 1, 1)

    def test_power_curve_preferred(self):
        summary = summarize_power([
            ride_at(date(2025, 6, 10), average_watts=200, normalized_power=230, max_watts=900,
                    power_curve_summary={"300s": 340, "1200s": 285, "3600s": 250}),
        ])
        assert summary["best_power_short"] == 340
        assert summary["best_power_medium"] == 285
        assert summary["best_power_long"] == 250
        assert summary["peak_power"] == 900
        assert summary["best_normalized_power"] == 230
        assert summary["weighted_avg_watts"] == 230
        assert summary["has_real_power_data"] is True
        assert summary["power_source"] == "power_meter"

    def test_no_power(self):
        assert summarize_power([]) is None
        assert summarize_power([ride_at(date(2025, 6, 10), average_watts=0)]) is None


class TestFitnessVerdict:
    """Fitter or not, from load and power"""

    def test_load_alone_is_low_confidence(self):
        verdict = fitness_verdict({"ctl": 50, "power": None}, {"ctl": 48, "power": None})
        assert verdict["verdict"] == "similar"
        assert verdict["confidence"] == "low"
        assert verdict["comparisons"] == {"better": 0, "worse": 0, "same": 0}

    def test_lower_power_is_less_fit(self):
        verdict = fitness_verdict(
            {"ctl": 40, "power": {"best_power_short": 280, "best_power_medium": 250}},
            {"ctl": 60, "power": {"best_power_short": 300, "best_power_medium": 270}},
        )
        assert verdict["verdict"] == "less_fit"
        assert verdict["confidence"] == "moderate"
        assert verdict["comparisons"]["worse"] == 3
        assert verdict["insights"][0] == "Training load (CTL) is 20 points lower"

    def test_lower_load_with_higher_power_is_fitter(self):
        verdict = fitness_verdict(
            {"ctl": 45, "power": {"best_power_short": 320}},
            {"ctl": 50, "power": {"best_power_short": 300}},
        )
        assert verdict["verdict"] == "fitter"
        assert verdict["insights"][0].startswith("Training volume is lower but power outputs are higher")
        assert verdict["insights"][1] == "Best 5-minute power: +20W (+7%)"


class TestComparePeriods:
    """Last four weeks against an earlier period"""

    def test_against_last_year(self, storage, history):
        store_weeks(storage, [60, 60, 60, 60])
        store_week(storage, date(2024, 6, 10), 40, hours=6.0)
        store_week(storage, date(2024, 6, 17), 40, hours=6.0)

        result = history.query(ATHLETE_ID, query_type="compare_periods")

        assert result["success"] is True
        assert result["comparison_period"]["label"] == "same time last year"
        assert result["comparison_period"]["weeks"] == ["2024-06-17", "2024-06-10"]
        assert result["current_period"]["avg_ctl"] == 60
        assert result["differences"] == {"ctl": 20, "weekly_hours": 2.0, "weekly_tss": 140}
        assert result["fitness_verdict"] is None
        assert result["summary"].startswith("Compared to same time last year:\n• Training Load (CTL): +20 (60 vs 40)")

    def test_no_data_last_year(self, storage, history):
        store_weeks(storage, [60, 60, 60, 60])
        result = history.query(ATHLETE_ID, query_type="compare_periods", compare_to="same_time_last_year")
        assert result["success"] is False
        assert result["message"].startswith("No data available for same time last year.")

    def test_against_peak_with_power(self, storage, history):
        store_weeks(storage, [60, 60, 60, 60, 70, 80, 80, 70])
        storage.add_activities([
            ride_at(date(2025, 6, 10), average_watts=240, max_watts=790, kilojoules=860,
                    power_curve_summary={"300s": 330, "1200s": 290}),
            ride_at(date(2025, 5, 6), average_watts=220, max_watts=780, kilojoules=790,
                    power_curve_summary={"300s": 310, "1200s": 270}),
        ])

        result = history.query(ATHLETE_ID, query_type="compare_periods", compare_to="peak")

        assert result["comparison_period"]["label"] == "peak fitness period"
        assert result["comparison_period"]["weeks"] == ["2025-05-12", "2025-05-05", "2025-05-19", "2025-04-28"]
        assert result["comparison_period"]["avg_ctl"] == 75
        assert result["differences"]["ctl"] == -15
        assert result["current_period"]["power"]["best_power_short"] == 330
        assert result["comparison_period"]["power"]["best_power_short"] == 310

        verdict = result["fitness_verdict"]
        assert verdict["verdict"] == "fitter"
        assert verdict["confidence"] == "high"
        assert verdict["comparisons"] == {"better": 3, "worse": 1, "same": 1}
        assert "• Best 5-minute power: +20W (330W vs 310W)" in result["summary"]
        assert result["summary"].endswith("Verdict: FITTER than comparison period")

    def test_unknown_comparison(self, history):
        with pytest.raises(ValidationError):
            history.compare_periods(ATHLETE_ID, [], "decade")


class TestYearOverYear:
    """Same week in previous years"""

    def test_previous_years(self, storage, history):
        store_weeks(storage, [60, 60, 60, 60])
        store_week(storage, date(2024, 6, 10), 44)
        store_week(storage, date(2024, 6, 17), 45)
        store_week(storage, date(2023, 6, 19), 35)

        result = history.query(ATHLETE_ID, query_type="year_over_year")

        assert result["success"] is True
        assert result["current_year"]["week"] == "2025-06-16"
        assert [(y["year"], y["years_ago"], y["week"], y["ctl_difference"]) for y in result["previous_years"]] == [
            (2024, 1, "2024-06-17", 15),
            (2023, 2, "2023-06-19", 25),
        ]
        assert result["previous_years"][0]["power_comparison"] == {}
        assert result["fitness_verdict"]["verdict"] == "similar"
        assert "Year-over-year analysis (vs 2024):\n• Training Load (CTL): 60 vs 45 (+15)" in result["summary"]
        assert "Verdict: Your fitness appears similar to this time last year" in result["summary"]

    def test_power_differences(self, storage, history):
        store_weeks(storage, [60])
        store_week(storage, date(2024, 6, 17), 55)
        storage.add_activities([
            ride_at(date(2025, 6, 10), average_watts=230, kilojoules=800, power_curve_summary={"300s": 320}),
            ride_at(date(2024, 6, 11), average_watts=210, kilojoules=760, power_curve_summary={"300s": 300}),
        ])

        result = history.year_over_year(ATHLETE_ID, storage.list_snapshots(ATHLETE_ID, since=date(2025, 1, 1)))

        assert result["previous_years"][0]["power_comparison"] == {
            "best_power_short_diff": 20,
            "best_power_medium_diff": 20,
            "efficiency_diff": 40,
        }

    def test_no_previous_years(self, storage, history):
        store_weeks(storage, [60, 60])
        result = history.query(ATHLETE_ID, query_type="year_over_year")
        assert result["previous_years"] == []
        assert result["fitness_verdict"] is None
        assert result["summary"] == "No previous year data available for comparison."

    def test_no_current_data(self, history):
        assert history.year_over_year(ATHLETE_ID, [])["success"] is False


class TestSeasonalPattern:
    """Monthly averages across all history"""

    def test_monthly_averages(self, storage, history):
        store_weeks(storage, [70] * 3 + [60] * 4 + [50] * 4 + [40] * 5)

        result = history.query(ATHLETE_ID, query_type="seasonal_pattern")

        assert result["success"] is True
        assert [(m["month"], m["avg_ctl"], m["samples"]) for m in result["monthly_averages"]] == [
            ("Mar", 40, 5), ("Apr", 50, 4), ("May", 60, 4), ("Jun", 70, 3),
        ]
        assert result["peak_month"] == {"month": "Jun", "avg_ctl": 70, "avg_hours": 8.0}
        assert result["low_month"]["month"] == "Mar"
        assert result["total_weeks_analyzed"] == 16
        assert result["summary"] == (
            "Seasonal pattern: Peak fitness typically in Jun (avg CTL 70), "
            "lowest in Mar (avg CTL 40). Based on 16 weeks of data."
        )

    def test_needs_twelve_weeks(self, storage, history):
        store_weeks(storage, [50] * 11)
        result = history.query(ATHLETE_ID, query_type="seasonal_pattern")
        assert result["success"] is False


class TestTrainingResponse:
    """CTL response to load changes"""

    def test_load_increase(self, storage, history):
        for i in range(12):
            store_week(storage, CURRENT_WEEK - timedelta(weeks=i), 60 if i < 6 else 50, tss=400 if i < 6 else 300)

        result = history.query(ATHLETE_ID, query_type="training_response")

        assert result["success"] is True
        assert result["training_blocks_analyzed"] == 4
        assert result["load_increases"] == 4
        assert result["load_decreases"] == 0
        assert [r["load_change_percent"] for r in result["recent_responses"]] == [23, 33, 25, 17]
        assert [r["ctl_response_percent"] for r in result["recent_responses"]] == [14, 20, 15, 10]
        assert result["recent_responses"][0]["period"] == "2025-05-19"
        assert result["avg_ctl_response_to_load_increase"] == 15
        assert result["summary"].startswith(
            "Training response: When load increases by ~20%, CTL typically responds with +15% over 4 weeks.")

    def test_steady_load(self, storage, history):
        store_weeks(storage, [50] * 10)
        result = history.query(ATHLETE_ID, query_type="training_response")
        assert result["training_blocks_analyzed"] == 0
        assert result["avg_ctl_response_to_load_increase"] is None
        assert result["summary"] == "Not enough significant load changes to analyze training response patterns."

    def test_needs_eight_weeks(self):
        assert FitnessHistoryService.analyze_training_response([])["success"] is False
