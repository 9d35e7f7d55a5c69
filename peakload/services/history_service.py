#!/usr/bin/env python3
"""
Fitness History Service - Queries over stored weekly snapshots

Answers "how has my fitness changed recently?", "when was I at my peak?" and
"am I fitter than last year?" from FitnessSnapshot rows. Period comparisons
also look at power outputs from the activities behind each period, since
training load alone does not say whether the athlete got faster. When an
athlete has no snapshots yet, a two-year backfill is triggered before giving
up.
"""

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from functools import reduce
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from .snapshot_service import SnapshotService
from ..exceptions import validation_error
from ..storage.interface import ActivityQuery, SnapshotStore
from ..storage.model import Activity, FitnessSnapshot
from ..utils import get_service_logger


MAX_WEEKS_BACK = 104
AUTO_BACKFILL_WEEKS = 104
QUERY_TYPES = (
    "recent_trend", "peak_fitness", "compare_periods",
    "year_over_year", "seasonal_pattern", "training_response",
)
COMPARE_TARGETS = ("last_year", "same_time_last_year", "peak")
YEARS_COMPARED = 3
MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

NO_HISTORY_MESSAGE = (
    "No activity history found. The athlete needs to sync their activities "
    "from Strava or another provider first."
)
NO_HISTORY_SUGGESTION = "Connect Strava or import activities to build fitness history."


def _avg(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def form_label(tsb: int) -> str:
    """Describe training stress balance"""
    if tsb > 5:
        return "fresh"
    if tsb > -10:
        return "balanced"
    return "fatigued"


def _round2(value: float) -> float:
    return round(value, 2)


def _signed(value) -> str:
    return f"+{value}" if value >= 0 else str(value)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def _best(values: List[Optional[float]]) -> Optional[int]:
    present = [v for v in values if v]
    return int(round(max(present))) if present else None


def _exceeds(current: Optional[float], previous: Optional[float]) -> bool:
    return current is not None and previous is not None and current > previous


def summarize_power(activities: List[Activity]) -> Optional[Dict[str, Any]]:
    """
    Best power outputs and efficiency across a set of activities

    Mean-maximal power from attached power curves is preferred; activities
    without a curve fall back to their average watts, bucketed by moving time
    (20-60 min, 1-2 h, 2 h+).

    Returns:
        Power summary, or None when no activity recorded power
    """
    powered = [a for a in activities if a.average_watts]
    if not powered:
        return None

    with_curve = [a for a in powered if a.power_curve_summary]
    with_device_watts = [a for a in powered if getattr(a, "device_watts", None) is True]
    has_real_power = bool(with_curve or with_device_watts)

    def curve_best(key: str) -> Optional[int]:
        return _best([a.power_curve_summary.get(key) for a in with_curve])

    def bucket(low: float, high: Optional[float] = None) -> List[Activity]:
        return [a for a in powered
                if (a.moving_time or 0) >= low and (high is None or (a.moving_time or 0) < high)]

    short_efforts = bucket(1200, 3600)
    medium_efforts = bucket(3600, 7200)
    long_efforts = bucket(7200)

    total_kj = sum(a.kilojoules or 0 for a in powered)
    total_hours = sum(a.moving_time or 0 for a in powered) / 3600
    total_elevation = sum(a.total_elevation_gain or 0 for a in powered)
    total_tss = sum(a.tss or 0 for a in powered)
    watt_hours = sum((a.normalized_power or a.average_watts) * (a.moving_time or 0) / 3600 for a in powered)

    peak_power = _best([a.max_watts for a in powered])
    return {
        "activity_count": len(powered),
        "total_hours": _round2(total_hours),
        "total_kj": int(round(total_kj)),
        "total_tss": int(round(total_tss)) if total_tss > 0 else None,
        "best_power_short": curve_best("300s") or _best([a.average_watts for a in short_efforts]),
        "best_power_medium": curve_best("1200s") or _best([a.average_watts for a in medium_efforts]),
        "best_power_long": curve_best("3600s") or _best([a.average_watts for a in long_efforts]),
        "peak_power": peak_power,
        "best_normalized_power": _best([a.normalized_power for a in powered]),
        "kj_per_hour": int(round(total_kj / total_hours)) if total_hours > 0 else None,
        "weighted_avg_watts": int(round(watt_hours / total_hours)) if total_hours > 0 else None,
        "elevation_per_hour": int(round(total_elevation / total_hours)) if total_hours > 0 else None,
        "has_real_power_data": has_real_power,
        "activities_with_power_curve": len(with_curve),
        "activities_with_device_watts": len(with_device_watts),
        "short_effort_count": len(short_efforts),
        "medium_effort_count": len(medium_efforts),
        "long_effort_count": len(long_efforts),
        "power_source": "power_meter" if has_real_power else "estimated",
    }


POWER_COMPARISONS = [
    ("best_power_short", "5-minute power"),
    ("best_power_medium", "20-minute power"),
    ("best_power_long", "60-minute power"),
    ("peak_power", "peak power"),
]


def fitness_verdict(current: Dict[str, Any], previous: Dict[str, Any]) -> Dict[str, Any]:
    """
    Judge whether the athlete is fitter now than in a previous period

    Each side is {"ctl": ..., "power": summarize_power(...) or None}. Power
    outputs count for more than training load: a lower CTL with higher short
    or medium power is still called fitter.
    """
    tally = {"better": 0, "worse": 0, "same": 0}
    insights = []
    current_power = current.get("power") or {}
    previous_power = previous.get("power") or {}

    ctl_diff = current["ctl"] - previous["ctl"]
    if ctl_diff < -10:
        tally["worse"] += 1
        insights.append(f"Training load (CTL) is {int(round(abs(ctl_diff)))} points lower")
    elif ctl_diff > 10:
        tally["better"] += 1

    for key, name in POWER_COMPARISONS:
        now, before = current_power.get(key), previous_power.get(key)
        if not now or not before:
            continue
        diff = now - before
        pct = int(round(diff / before * 100))
        if pct >= 3:
            tally["better"] += 1
            insights.append(f"Best {name}: +{diff}W (+{pct}%)")
        elif pct <= -3:
            tally["worse"] += 1
            insights.append(f"Best {name}: {diff}W ({pct}%)")
        else:
            tally["same"] += 1

    now, before = current_power.get("kj_per_hour"), previous_power.get("kj_per_hour")
    if now and before:
        pct = int(round((now - before) / before * 100))
        if pct >= 5:
            tally["better"] += 1
            insights.append(f"Training efficiency: +{pct}% more kJ/hour")
        elif pct <= -5:
            tally["worse"] += 1
            insights.append(f"Training efficiency: {pct}% less kJ/hour")

    verdict = "similar"
    confidence = "low"
    better, worse = tally["better"], tally["worse"]
    total = better + worse + tally["same"]
    if total >= 3:
        confidence = "high" if total >= 5 else "moderate"
        if better > worse * 2:
            verdict = "fitter"
        elif worse > better * 2:
            verdict = "less_fit"
        elif better > worse:
            verdict = "slightly_fitter"
        elif worse > better:
            verdict = "slightly_less_fit"

    higher_power = (_exceeds(current_power.get("best_power_short"), previous_power.get("best_power_short"))
                    or _exceeds(current_power.get("best_power_medium"), previous_power.get("best_power_medium")))
    if current["ctl"] < previous["ctl"] and higher_power:
        verdict = "fitter"
        insights.insert(0, "Training volume is lower but power outputs are higher, "
                           "which indicates improved fitness quality")

    return {"verdict": verdict, "confidence": confidence, "insights": insights, "comparisons": tally}


PERIOD_VERDICT_TEXT = {
    "fitter": "FITTER than comparison period",
    "slightly_fitter": "Slightly fitter than comparison period",
    "similar": "Similar fitness to comparison period",
    "slightly_less_fit": "Slightly less fit than comparison period",
    "less_fit": "Lower fitness than comparison period",
}

YEAR_VERDICT_TEXT = {
    "fitter": "You appear to be FITTER than this time last year",
    "slightly_fitter": "You appear to be slightly fitter than this time last year",
    "similar": "Your fitness appears similar to this time last year",
    "slightly_less_fit": "You may be slightly less fit than this time last year",
    "less_fit": "Your power outputs suggest lower fitness than this time last year",
}


class FitnessHistoryService:
    """Read-side queries over weekly fitness snapshots"""

    def __init__(self, snapshots: SnapshotStore, snapshot_service: SnapshotService):
        self.snapshots = snapshots
        self.snapshot_service = snapshot_service
        self.logger = get_service_logger("history_service")

    def _recent_snapshots(self, athlete_id: str, weeks_back: int) -> List[FitnessSnapshot]:
        since = (self.snapshot_service.clock() - timedelta(weeks=min(weeks_back, MAX_WEEKS_BACK))).date()
        return self.snapshots.list_snapshots(athlete_id, since=since)

    def query(self, athlete_id: str, weeks_back: int = 12, query_type: str = "recent_trend",
              compare_to: str = "last_year") -> Dict[str, Any]:
        """
        Fitness history for an athlete

        Args:
            athlete_id: Athlete identifier
            weeks_back: How many weeks of snapshots to consider (at most 104)
            query_type: One of QUERY_TYPES; unknown types fall back to recent_trend
            compare_to: Comparison period for compare_periods, one of COMPARE_TARGETS

        Returns:
            Query result with success flag; an explicit message and suggestion
            when the athlete has no history at all
        """
        log = self.logger.bind(athlete_id=athlete_id)
        snapshots = self._recent_snapshots(athlete_id, weeks_back)
        log.info("📊 Found existing snapshots", count=len(snapshots))

        if not snapshots:
            log.info("📊 No snapshots found, triggering auto-backfill")
            result = self.snapshot_service.backfill_snapshots(athlete_id, AUTO_BACKFILL_WEEKS)
            if result.snapshots_created > 0:
                snapshots = self._recent_snapshots(athlete_id, weeks_back)
                log.info("📊 Auto-backfill complete", snapshots_created=result.snapshots_created,
                         found=len(snapshots))

            if not snapshots:
                return {
                    "success": False,
                    "message": NO_HISTORY_MESSAGE,
                    "suggestion": NO_HISTORY_SUGGESTION,
                }

        if query_type == "peak_fitness":
            return self.find_peak_fitness(athlete_id, snapshots)
        if query_type == "compare_periods":
            return self.compare_periods(athlete_id, snapshots, compare_to)
        if query_type == "year_over_year":
            return self.year_over_year(athlete_id, snapshots)
        if query_type == "seasonal_pattern":
            return self.seasonal_pattern(athlete_id)
        if query_type == "training_response":
            return self.analyze_training_response(snapshots)
        return self.analyze_recent_trend(snapshots)

    @staticmethod
    def analyze_recent_trend(snapshots: List[FitnessSnapshot]) -> Dict[str, Any]:
        """Last 4 weeks against the 4 before, newest-first input"""
        recent = snapshots[:4]
        prior = snapshots[4:8] or recent
        if not recent:
            return {"success": False, "message": "Insufficient recent data for trend analysis"}

        current = recent[0]
        recent_ctl = _avg([s.ctl for s in recent])
        prior_ctl = _avg([s.ctl for s in prior])
        recent_hours = _avg([s.weekly_hours for s in recent])
        prior_hours = _avg([s.weekly_hours for s in prior])

        ctl_change = int(round((recent_ctl - prior_ctl) / prior_ctl * 100)) if prior_ctl > 0 else 0
        volume_change = int(round((recent_hours - prior_hours) / prior_hours * 100)) if prior_hours > 0 else 0

        if ctl_change > 5:
            direction = "improving"
        elif ctl_change < -5:
            direction = "declining"
        else:
            direction = "stable"

        form = form_label(current.tsb)
        sign = "+" if ctl_change >= 0 else ""
        return {
            "success": True,
            "current": {
                "week": current.snapshot_week.isoformat(),
                "ctl": current.ctl,
                "atl": current.atl,
                "tsb": current.tsb,
                "form": form,
                "weekly_tss": current.weekly_tss,
                "weekly_hours": current.weekly_hours,
                "weekly_rides": current.weekly_ride_count,
                "load_trend": current.load_trend,
                "ftp": current.ftp,
            },
            "trend": {
                "direction": direction,
                "ctl_change_percent": ctl_change,
                "volume_change_percent": volume_change,
                "recent_avg_ctl": int(round(recent_ctl)),
                "prior_avg_ctl": int(round(prior_ctl)),
                "recent_avg_hours": round(recent_hours, 2),
                "prior_avg_hours": round(prior_hours, 2),
            },
            "weeks_analyzed": len(snapshots),
            "summary": (
                f"Fitness is {direction}. CTL {sign}{ctl_change}% over last 4 weeks. "
                f"Currently at CTL {current.ctl}, TSB {current.tsb} ({form})."
            ),
        }

    def find_peak_fitness(self, athlete_id: str,
                          recent: Optional[List[FitnessSnapshot]] = None) -> Dict[str, Any]:
        """Highest-CTL week on record compared with the current week"""
        all_snapshots = self.snapshots.list_snapshots(athlete_id)
        if not all_snapshots:
            return {"success": False, "message": "No fitness history available for peak analysis"}

        ranked = sorted(all_snapshots, key=lambda s: s.ctl, reverse=True)
        peak = ranked[0]
        current = (recent or all_snapshots)[0]

        weeks_ago = (current.snapshot_week - peak.snapshot_week).days // 7
        percent_of_peak = int(round(current.ctl / peak.ctl * 100)) if peak.ctl > 0 else 100
        when = f"{weeks_ago} weeks ago" if weeks_ago > 0 else "this week"

        return {
            "success": True,
            "peak": {
                "week": peak.snapshot_week.isoformat(),
                "ctl": peak.ctl,
                "weekly_tss": peak.weekly_tss,
                "weekly_hours": peak.weekly_hours,
                "weekly_rides": peak.weekly_ride_count,
                "weeks_ago": weeks_ago,
            },
            "current": {
                "ctl": current.ctl,
                "percent_of_peak": percent_of_peak,
            },
            "top_fitness_weeks": [
                {"week": s.snapshot_week.isoformat(), "ctl": s.ctl, "hours": s.weekly_hours}
                for s in ranked[:5]
            ],
            "summary": (
                f"Peak fitness (CTL {peak.ctl}) was {when} during the week of "
                f"{peak.snapshot_week.isoformat()}. Current fitness is {percent_of_peak}% "
                f"of peak (CTL {current.ctl})."
            ),
        }

    def power_metrics(self, athlete_id: str, start: datetime, end: datetime) -> Optional[Dict[str, Any]]:
        """Power summary over visible canonical activities starting in [start, end)"""
        query = ActivityQuery(athlete_id).add_date_range(start, end).exclude_hidden().exclude_duplicates()
        return summarize_power(self.snapshot_service.activities.search_activities(query))

    @staticmethod
    def _period_averages(snapshots: List[FitnessSnapshot]) -> Dict[str, float]:
        return {
            "ctl": _avg([s.ctl for s in snapshots]),
            "weekly_tss": _avg([s.weekly_tss for s in snapshots]),
            "weekly_hours": _avg([s.weekly_hours for s in snapshots]),
            "weekly_rides": _avg([s.weekly_ride_count for s in snapshots]),
        }

    @staticmethod
    def _period_summary(snapshots: List[FitnessSnapshot], averages: Dict[str, float],
                        power: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            "weeks": [s.snapshot_week.isoformat() for s in snapshots],
            "avg_ctl": int(round(averages["ctl"])),
            "avg_weekly_tss": int(round(averages["weekly_tss"])),
            "avg_weekly_hours": _round2(averages["weekly_hours"]),
            "avg_rides_per_week": _round2(averages["weekly_rides"]),
            "power": power,
        }

    def compare_periods(self, athlete_id: str, recent: List[FitnessSnapshot],
                        compare_to: str = "last_year") -> Dict[str, Any]:
        """
        Compare the last four weeks with an earlier period

        Args:
            athlete_id: Athlete identifier
            recent: Recent snapshots, newest first
            compare_to: "last_year" (or "same_time_last_year") for the four
                weeks either side of today one year ago, "peak" for the four
                highest-CTL weeks on record

        Returns:
            Averages of both periods, their differences, power summaries and
            a fitness verdict when both periods have power data

        Raises:
            ValidationError: If compare_to is not a known comparison period
        """
        if compare_to not in COMPARE_TARGETS:
            raise validation_error(f"Unknown comparison period: {compare_to}",
                                   compare_to=compare_to, allowed=list(COMPARE_TARGETS))

        now = self.snapshot_service.clock()
        current = recent[:4]
        window = None
        if compare_to == "peak":
            label = "peak fitness period"
            comparison = sorted(self.snapshots.list_snapshots(athlete_id), key=lambda s: s.ctl, reverse=True)[:4]
            if comparison:
                weeks = [s.snapshot_week for s in comparison]
                window = (_midnight(min(weeks)), _midnight(max(weeks) + timedelta(days=7)))
        else:
            label = "same time last year"
            one_year_ago = now - relativedelta(years=1)
            window = (one_year_ago - timedelta(days=14), one_year_ago + timedelta(days=14))
            comparison = self.snapshots.list_snapshots(athlete_id, since=window[0].date(), until=window[1].date())

        if not comparison:
            return {
                "success": False,
                "message": f"No data available for {label}. The athlete may not have enough history.",
            }

        current_power = self.power_metrics(athlete_id, now - timedelta(days=28), now)
        comparison_power = self.power_metrics(athlete_id, *window)
        current_avg = self._period_averages(current)
        comparison_avg = self._period_averages(comparison)
        self.logger.debug("📊 Comparing periods", athlete_id=athlete_id, compare_to=compare_to,
                          comparison_weeks=len(comparison))

        ctl_diff = int(round(current_avg["ctl"] - comparison_avg["ctl"]))
        hours_diff = _round2(current_avg["weekly_hours"] - comparison_avg["weekly_hours"])

        verdict = None
        if current_power and comparison_power:
            verdict = fitness_verdict({"ctl": current_avg["ctl"], "power": current_power},
                                      {"ctl": comparison_avg["ctl"], "power": comparison_power})

        lines = [
            f"Compared to {label}:",
            f"• Training Load (CTL): {_signed(ctl_diff)} "
            f"({int(round(current_avg['ctl']))} vs {int(round(comparison_avg['ctl']))})",
            f"• Weekly volume: {_signed(hours_diff)} hours "
            f"({_round2(current_avg['weekly_hours'])} vs {_round2(comparison_avg['weekly_hours'])} hrs/week)",
        ]
        if current_power and comparison_power:
            for key, name in POWER_COMPARISONS[:2]:
                now_watts, before_watts = current_power[key], comparison_power[key]
                if now_watts and before_watts:
                    lines.append(f"• Best {name}: {_signed(now_watts - before_watts)}W "
                                 f"({now_watts}W vs {before_watts}W)")
        summary = "\n".join(lines)
        if verdict:
            summary += f"\n\nVerdict: {PERIOD_VERDICT_TEXT[verdict['verdict']]}"

        return {
            "success": True,
            "current_period": self._period_summary(current, current_avg, current_power),
            "comparison_period": {"label": label, **self._period_summary(comparison, comparison_avg, comparison_power)},
            "differences": {
                "ctl": ctl_diff,
                "weekly_hours": hours_diff,
                "weekly_tss": int(round(current_avg["weekly_tss"] - comparison_avg["weekly_tss"])),
            },
            "fitness_verdict": verdict,
            "summary": summary,
        }

    def year_over_year(self, athlete_id: str, recent: List[FitnessSnapshot]) -> Dict[str, Any]:
        """
        The current week against the same week in each of the last three years

        Power is compared over a six-week window centered on the current week,
        shifted back by whole years.
        """
        if not recent:
            return {"success": False, "message": "No current fitness data available"}

        current = recent[0]
        current_week = current.snapshot_week
        window_start = _midnight(current_week - timedelta(days=21))
        window_end = _midnight(current_week + timedelta(days=21))
        current_power = self.power_metrics(athlete_id, window_start, window_end)

        previous_years = []
        for years_back in range(1, YEARS_COMPARED + 1):
            shift = relativedelta(years=years_back)
            target = current_week - shift
            found = self.snapshots.list_snapshots(athlete_id, since=target - timedelta(days=7),
                                                  until=target + timedelta(days=7))
            if not found:
                continue

            past = found[0]
            past_power = self.power_metrics(athlete_id, window_start - shift, window_end - shift)
            power_comparison = {}
            if current_power and past_power:
                for key, diff_key in (("best_power_short", "best_power_short_diff"),
                                      ("best_power_medium", "best_power_medium_diff"),
                                      ("best_power_long", "best_power_long_diff"),
                                      ("peak_power", "peak_power_diff"),
                                      ("kj_per_hour", "efficiency_diff")):
                    if current_power[key] and past_power[key]:
                        power_comparison[diff_key] = current_power[key] - past_power[key]

            previous_years.append({
                "year": target.year,
                "years_ago": years_back,
                "week": past.snapshot_week.isoformat(),
                "ctl": past.ctl,
                "weekly_hours": past.weekly_hours,
                "weekly_tss": past.weekly_tss,
                "ctl_difference": current.ctl - past.ctl,
                "power": past_power,
                "power_comparison": power_comparison,
            })

        verdict = None
        if previous_years:
            last = previous_years[0]
            verdict = fitness_verdict({"ctl": current.ctl, "power": current_power},
                                      {"ctl": last["ctl"], "power": last["power"]})

            lines = [
                f"Year-over-year analysis (vs {last['year']}):",
                f"• Training Load (CTL): {current.ctl} vs {last['ctl']} ({_signed(last['ctl_difference'])})",
            ]
            past_power = last["power"]
            if current_power and past_power:
                for key, name in POWER_COMPARISONS[:2]:
                    now_watts, before_watts = current_power[key], past_power[key]
                    line = f"• Best {name}: {now_watts or 'N/A'}W vs {before_watts or 'N/A'}W"
                    if now_watts and before_watts:
                        line += f" ({_signed(now_watts - before_watts)}W)"
                    lines.append(line)
                lines.append(f"• Training efficiency: {current_power['kj_per_hour'] or 'N/A'} kJ/hr "
                             f"vs {past_power['kj_per_hour'] or 'N/A'} kJ/hr")
            summary = "\n".join(lines) + f"\n\nVerdict: {YEAR_VERDICT_TEXT[verdict['verdict']]}"
            if verdict["insights"]:
                summary += "\nKey insights:\n" + "\n".join(f"  - {insight}" for insight in verdict["insights"])
        else:
            summary = "No previous year data available for comparison."

        return {
            "success": True,
            "current_year": {
                "year": current_week.year,
                "week": current_week.isoformat(),
                "ctl": current.ctl,
                "weekly_hours": current.weekly_hours,
                "weekly_tss": current.weekly_tss,
                "power": current_power,
            },
            "previous_years": previous_years,
            "fitness_verdict": verdict,
            "summary": summary,
        }

    def seasonal_pattern(self, athlete_id: str) -> Dict[str, Any]:
        """Average CTL and volume per calendar month over all snapshots"""
        snapshots = self.snapshots.list_snapshots(athlete_id)
        if len(snapshots) < 12:
            return {"success": False, "message": "Need at least 12 weeks of data for seasonal pattern analysis"}

        by_month = defaultdict(list)
        for snapshot in snapshots:
            by_month[snapshot.snapshot_week.month].append(snapshot)

        monthly = [
            {
                "month": MONTH_NAMES[month - 1],
                "month_num": month,
                "avg_ctl": int(round(_avg([s.ctl for s in group]))),
                "avg_hours": _round2(_avg([s.weekly_hours for s in group])),
                "samples": len(group),
            }
            for month, group in sorted(by_month.items())
        ]
        peak = reduce(lambda a, b: a if a["avg_ctl"] > b["avg_ctl"] else b, monthly)
        low = reduce(lambda a, b: a if a["avg_ctl"] < b["avg_ctl"] else b, monthly)

        return {
            "success": True,
            "monthly_averages": monthly,
            "peak_month": {"month": peak["month"], "avg_ctl": peak["avg_ctl"], "avg_hours": peak["avg_hours"]},
            "low_month": {"month": low["month"], "avg_ctl": low["avg_ctl"], "avg_hours": low["avg_hours"]},
            "total_weeks_analyzed": len(snapshots),
            "summary": (
                f"Seasonal pattern: Peak fitness typically in {peak['month']} (avg CTL {peak['avg_ctl']}), "
                f"lowest in {low['month']} (avg CTL {low['avg_ctl']}). "
                f"Based on {len(snapshots)} weeks of data."
            ),
        }

    @staticmethod
    def analyze_training_response(snapshots: List[FitnessSnapshot]) -> Dict[str, Any]:
        """
        How CTL responded to load changes of more than 15%

        Walks the newest-first snapshots comparing the four weeks ending at
        each week with the four weeks before them.
        """
        if len(snapshots) < 8:
            return {"success": False, "message": "Need at least 8 weeks of data for training response analysis"}

        responses = []
        for i in range(4, len(snapshots) - 4):
            before = snapshots[i + 1:i + 5]
            after = snapshots[max(0, i - 3):i + 1]

            load_before = _avg([s.weekly_tss for s in before])
            load_after = _avg([s.weekly_tss for s in after])
            ctl_before = _avg([s.ctl for s in before])
            ctl_after = _avg([s.ctl for s in after])

            load_change = (load_after - load_before) / load_before * 100 if load_before > 0 else 0
            ctl_change = (ctl_after - ctl_before) / ctl_before * 100 if ctl_before > 0 else 0
            if abs(load_change) > 15:
                responses.append({
                    "period": snapshots[i].snapshot_week.isoformat(),
                    "load_change_percent": int(round(load_change)),
                    "ctl_response_percent": int(round(ctl_change)),
                    "type": "increase" if load_change > 0 else "decrease",
                })

        increases = [r for r in responses if r["type"] == "increase"]
        avg_response = int(round(_avg([r["ctl_response_percent"] for r in increases]))) if increases else None

        if increases:
            summary = (
                f"Training response: When load increases by ~20%, CTL typically responds with "
                f"+{avg_response}% over 4 weeks. Found {len(responses)} significant load changes in the history."
            )
        else:
            summary = "Not enough significant load changes to analyze training response patterns."

        return {
            "success": True,
            "training_blocks_analyzed": len(responses),
            "load_increases": len(increases),
            "load_decreases": len(responses) - len(increases),
            "avg_ctl_response_to_load_increase": avg_response,
            "recent_responses": responses[:5],
            "summary": summary,
        }
