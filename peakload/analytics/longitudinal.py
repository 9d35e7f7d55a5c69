#!/usr/bin/env python3
"""
Longitudinal Analytics

Trends across an athlete's activity history:

- Dynamic FTP estimation from recent best efforts
- Mean-maximal power (MMP) progression over rolling windows
- Training monotony and strain (Banister model) with overtraining risk
- Workout execution scoring, planned versus actual
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..config import get_load_config
from ..storage.model import Activity, PlannedWorkout
from .interface import InvalidParameterError
from .tss import estimate_stress
from ..utils import get_logger


logger = get_logger(__name__)


FTP_EFFORT_KEYS = {
    300: "300s",
    600: "600s",
    1200: "1200s",
    1800: "1800s",
    3600: "3600s",
}
BEST_EFFORT_LABELS = {
    300: "5min",
    600: "10min",
    1200: "20min",
    1800: "30min",
    3600: "60min",
}
MMP_DURATIONS = ["5s", "60s", "300s", "1200s", "3600s"]
MMP_SAMPLE_INTERVAL_DAYS = 30


def collect_best_efforts(activities: Sequence[Activity]) -> Dict[str, Any]:
    """Best power at 5/10/20/30/60 minutes and the date each was set"""
    best = {seconds: 0.0 for seconds in FTP_EFFORT_KEYS}
    best_dates: Dict[str, str] = {}

    for activity in activities:
        curve = activity.power_curve_summary
        if not curve:
            continue
        for seconds, key in FTP_EFFORT_KEYS.items():
            value = curve.get(key)
            if value and value > best[seconds]:
                best[seconds] = value
                best_dates[BEST_EFFORT_LABELS[seconds]] = activity.start_date.isoformat()

    return {
        "best": best,
        "best_efforts": {BEST_EFFORT_LABELS[s]: (v or None) for s, v in best.items()},
        "best_effort_dates": best_dates,
    }


def estimate_dynamic_ftp(activities: Sequence[Activity],
                         current_ftp: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """
    Estimate FTP from the best efforts found in recent activities

    Methods, in order of preference:
    - 95% of the best 20-minute power (high confidence)
    - 75% of the best 5-minute power when no 20-minute effort exists (moderate)
    - with a 60-minute best: 0.4 × the above + 0.6 × 60-minute power, or the
      60-minute power directly (very high)

    Args:
        activities: Activities with power_curve_summary tables
        current_ftp: The athlete's configured FTP, for the recommendation

    Returns:
        Estimate with method, confidence and best efforts, or None
    """
    if not activities:
        return None

    efforts = collect_best_efforts(activities)
    best = efforts["best"]

    estimated = None
    method = None
    confidence = "low"

    if best[1200] > 0:
        estimated = int(round(best[1200] * 0.95))
        method = "95% of best 20-min power"
        confidence = "high"

    if not estimated and best[300] > 0:
        estimated = int(round(best[300] * 0.75))
        method = "75% of best 5-min power"
        confidence = "moderate"

    if best[3600] > 0:
        if estimated:
            estimated = int(round(estimated * 0.4 + best[3600] * 0.6))
            method = "weighted 20-min + 60-min"
        else:
            estimated = int(round(best[3600]))
            method = "best 60-min power"
        confidence = "very_high"

    if not estimated:
        return None
    logger.debug(f"Estimated FTP {estimated}W ({method}, {confidence})")

    delta = None
    recommendation = None
    if current_ftp:
        delta = estimated - current_ftp
        pct_delta = int(round(delta / current_ftp * 100))
        if pct_delta > 5:
            recommendation = (
                f"Your recent efforts suggest your FTP may be {pct_delta}% higher than your "
                f"current setting. Consider updating to {estimated}W."
            )
        elif pct_delta < -10:
            recommendation = (
                f"Your recent efforts are below your current FTP setting by {abs(pct_delta)}%. "
                f"Your FTP may have decreased, or you haven't done a hard effort recently."
            )

    return {
        "estimated_ftp": estimated,
        "method": method,
        "confidence": confidence,
        "delta_from_current": delta,
        "recommendation": recommendation,
        "best_efforts": efforts["best_efforts"],
        "best_effort_dates": efforts["best_effort_dates"],
    }


def track_mmp_progression(activities: Sequence[Activity], window_days: int = None) -> Dict[str, Any]:
    """
    Best power at key durations within a trailing window, sampled every 30 days

    Needs at least 3 activities with power curves; otherwise the progression
    is empty. Trends compare the latest sample with the one three samples earlier.
    """
    if window_days is None:
        window_days = get_load_config().mmp_window_days
    if window_days <= 0:
        raise InvalidParameterError("window_days must be positive", {"window_days": window_days})

    with_curves = sorted(
        (a for a in activities if a.power_curve_summary),
        key=lambda a: a.start_time,
    )
    empty = {"progression": [], "trends": {}, "durations": list(MMP_DURATIONS)}
    if len(with_curves) < 3:
        return empty

    window = timedelta(days=window_days)
    first = with_curves[0].start_time
    last = with_curves[-1].start_time

    progression: List[Dict[str, Any]] = []
    sample = first
    while sample <= last:
        in_window = [a for a in with_curves if sample - window <= a.start_time <= sample]
        if in_window:
            point: Dict[str, Any] = {
                "date": sample.date().isoformat(),
                "activity_count": len(in_window),
            }
            for duration in MMP_DURATIONS:
                values = [a.power_curve_summary.get(duration) for a in in_window]
                values = [v for v in values if v and v > 0]
                point[f"best_{duration}"] = max(values) if values else None
            progression.append(point)
        sample += timedelta(days=MMP_SAMPLE_INTERVAL_DAYS)

    trends: Dict[str, Any] = {}
    if len(progression) >= 2:
        recent = progression[-1]
        prior = progression[max(0, len(progression) - 4)]
        for duration in MMP_DURATIONS:
            key = f"best_{duration}"
            if recent[key] and prior[key]:
                trends[duration] = {
                    "current": recent[key],
                    "prior": prior[key],
                    "change": recent[key] - prior[key],
                    "change_percent": int(round((recent[key] - prior[key]) / prior[key] * 100)),
                }

    return {"progression": progression, "trends": trends, "durations": list(MMP_DURATIONS)}


def _monotony(week: np.ndarray) -> tuple:
    mean = float(week.mean())
    std_dev = float(week.std())
    monotony = mean / std_dev if std_dev > 0 else 0.0
    return mean, std_dev, monotony


def calculate_training_monotony_strain(daily: Sequence[float]) -> Optional[Dict[str, Any]]:
    """
    Training monotony (mean / stddev of the last 7 days) and strain (weekly stress × monotony)

    Args:
        daily: Daily stress totals, oldest first (at least 7 days)

    Returns:
        Monotony, strain, risk band and, with 14+ days, the week-over-week trend
    """
    if daily is None or len(daily) < 7:
        return None

    values = np.asarray(daily, dtype=float)
    recent = values[-7:]
    mean, std_dev, raw_monotony = _monotony(recent)
    monotony = round(raw_monotony, 2)
    weekly = float(recent.sum())
    strain = int(round(weekly * monotony))

    if monotony > 2.0 and strain > 5000:
        risk = "high"
    elif monotony > 2.0 or strain > 4000:
        risk = "moderate"
    elif monotony > 1.5:
        risk = "watch"
    else:
        risk = "low"

    trend = None
    if values.size >= 14:
        prior = values[-14:-7]
        _, _, prior_monotony = _monotony(prior)
        prior_strain = float(prior.sum()) * prior_monotony
        if strain > prior_strain * 1.1:
            direction = "increasing"
        elif strain < prior_strain * 0.9:
            direction = "decreasing"
        else:
            direction = "stable"
        trend = {
            "monotony_change": round(monotony - prior_monotony, 2),
            "strain_change": int(round(strain - prior_strain)),
            "direction": direction,
        }

    return {
        "monotony": monotony,
        "strain": strain,
        "weekly_tss": int(round(weekly)),
        "daily_mean_tss": int(round(mean)),
        "daily_stddev_tss": int(round(std_dev)),
        "risk": risk,
        "trend": trend,
    }


def _adherence(actual: float, target: float) -> int:
    return int(round(min(actual, target) / max(actual, target) * 100))


def score_workout_execution(planned: Optional[PlannedWorkout],
                            actual: Optional[Activity]) -> Optional[Dict[str, Any]]:
    """
    Score how closely a completed activity matched its planned workout (0-100)

    Weighted components: duration 3, training stress 3, intensity factor 2,
    distance 1. Components without both a target and an actual value are skipped.
    """
    if planned is None or actual is None:
        return None

    actual_tss = actual.tss if actual.tss else estimate_stress(actual)
    scores: Dict[str, int] = {}
    weighted = 0
    total_weight = 0

    components = [
        ("duration", planned.target_duration_minutes, actual.moving_time / 60 if actual.moving_time else None, 3),
        ("tss", planned.target_tss, actual_tss or None, 3),
        ("intensity", planned.target_intensity_factor, actual.intensity_factor, 2),
        ("distance", planned.target_distance_km, actual.distance / 1000 if actual.distance else None, 1),
    ]
    for name, target, value, weight in components:
        if not target or not value:
            continue
        scores[name] = _adherence(value, target)
        weighted += scores[name] * weight
        total_weight += weight

    overall = int(round(weighted / total_weight)) if total_weight else 0

    if overall >= 90:
        rating = "nailed_it"
    elif overall >= 75:
        rating = "good"
    elif overall >= 60:
        rating = "acceptable"
    elif overall >= 40:
        rating = "deviated"
    else:
        rating = "missed"

    return {
        "overall_score": overall,
        "rating": rating,
        "was_completed": bool(scores),
        "breakdown": scores,
        "planned_summary": {
            "duration_min": planned.target_duration_minutes,
            "tss": planned.target_tss,
            "intensity": planned.target_intensity_factor,
        },
        "actual_summary": {
            "duration_min": int(round(actual.moving_time / 60)) if actual.moving_time else None,
            "tss": actual_tss,
            "intensity": actual.intensity_factor,
        },
    }
