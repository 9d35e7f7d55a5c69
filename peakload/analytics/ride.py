#!/usr/bin/env python3
"""
Per-Ride Analytics

Physiological signal analysis over per-second streams of one ride:

- Pacing: quarter and half comparisons, split classification, power fade
- Match burning: contiguous surges above critical power or FTP
- Fatigue resistance: power held late in the ride versus early, cardiac drift
- Heart rate zone distribution (% of max HR)
- Cadence distribution and the cadence-power relationship
- Variability Index (NP / average power) and Efficiency Factor (NP / average HR)

Every analysis returns None when the stream is too short or a required
threshold is missing. Zero or missing samples count as "not pedaling" and
are excluded from non-zero means.
"""

from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from ..config import get_load_config
from ..storage.model import Activity, AthletePreferences
from .interface import AnalyticsResult, AnalyticsType, InvalidParameterError
from ..utils import get_logger


logger = get_logger(__name__)


NP_WINDOW = 30
MIN_PACING_SAMPLES = 120
MIN_MATCH_SAMPLES = 60
MIN_FATIGUE_SAMPLES = 600
MIN_HR_SAMPLES = 60
MIN_CADENCE_SAMPLES = 60
MIN_PEDALING_SAMPLES = 30

VALID_HR_MIN = 40
VALID_HR_MAX = 250
MAX_VALID_POWER = 2500
MAX_VALID_CADENCE = 250
MATCH_LIST_LIMIT = 20

HR_ZONES = [
    ("Zone 1 - Recovery", 0.0, 0.60),
    ("Zone 2 - Endurance", 0.60, 0.70),
    ("Zone 3 - Tempo", 0.70, 0.80),
    ("Zone 4 - Threshold", 0.80, 0.90),
    ("Zone 5 - VO2max+", 0.90, 1.10),
]

CADENCE_BUCKETS = [
    ("<60 rpm (grinding)", 1, 60),
    ("60-70 rpm (low)", 60, 70),
    ("70-80 rpm (moderate)", 70, 80),
    ("80-90 rpm (optimal)", 80, 90),
    ("90-100 rpm (high)", 90, 100),
    ("100+ rpm (spinning)", 100, 300),
]


def _as_array(values: Optional[Sequence[Optional[float]]]) -> np.ndarray:
    """Stream as a float array with missing samples as 0"""
    if values is None:
        return np.zeros(0)
    return np.array([v if v is not None else 0 for v in values], dtype=float)


def _mean_non_zero(values: np.ndarray) -> float:
    positive = values[values > 0]
    if positive.size == 0:
        return 0.0
    return float(positive.mean())


def _round2(value: float) -> float:
    return round(value * 100) / 100


def _normalized_power(power: np.ndarray) -> Optional[int]:
    if power.size < NP_WINDOW:
        return None
    rolling = np.convolve(power, np.ones(NP_WINDOW) / NP_WINDOW, mode="valid")
    return int(round(float(np.mean(rolling ** 4)) ** 0.25))


def calculate_normalized_power(power_stream: Sequence[float]) -> Optional[int]:
    """
    Normalized Power: fourth root of the mean fourth power of 30-second rolling averages

    Args:
        power_stream: Per-second power in watts

    Returns:
        Rounded NP, or None below 30 samples
    """
    return _normalized_power(_as_array(power_stream))


def analyze_pacing(power_stream: Sequence[float], ftp: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """
    Pacing strategy from a power stream split into quarters

    Args:
        power_stream: Per-second power in watts (at least 120 samples)
        ftp: Optional threshold for per-quarter intensity factors

    Returns:
        Pacing summary or None
    """
    power = _as_array(power_stream)
    if power.size < MIN_PACING_SAMPLES:
        return None

    quarter_len = power.size // 4
    quarters = [
        power[:quarter_len],
        power[quarter_len:quarter_len * 2],
        power[quarter_len * 2:quarter_len * 3],
        power[quarter_len * 3:],
    ]
    quarter_avgs = [_mean_non_zero(q) for q in quarters]

    half = power.size // 2
    first_half = _mean_non_zero(power[:half])
    second_half = _mean_non_zero(power[half:])
    split_ratio = second_half / first_half if first_half > 0 else 1.0

    power_fade = 0
    if quarter_avgs[0] > 0:
        power_fade = int(round((quarter_avgs[3] - quarter_avgs[0]) / quarter_avgs[0] * 100))

    if split_ratio > 1.03:
        strategy = "negative_split"
    elif split_ratio < 0.92:
        strategy = "positive_split_heavy"
    elif split_ratio < 0.97:
        strategy = "positive_split"
    else:
        strategy = "even_split"

    quarter_np = [_normalized_power(q) for q in quarters]

    result = {
        "strategy": strategy,
        "split_ratio": _round2(split_ratio),
        "power_fade_percent": power_fade,
        "normalized_power": _normalized_power(power),
        "quarter_avg_watts": [int(round(avg)) for avg in quarter_avgs],
        "quarter_np": quarter_np,
        "first_half_avg": int(round(first_half)),
        "second_half_avg": int(round(second_half)),
    }
    if ftp:
        result["quarter_if"] = [_round2(np_value / ftp) if np_value else None for np_value in quarter_np]
    return result


def _close_match(power: np.ndarray, start: int, end: int, threshold: float) -> Dict[str, Any]:
    segment = power[start:end]
    work = float(np.sum(segment - threshold))
    return {
        "start_sec": start,
        "duration_sec": end - start,
        "peak_watts": int(round(float(segment.max()))),
        "avg_watts": int(round(_mean_non_zero(segment))),
        "work_above_threshold_kj": round(work / 1000, 1),
    }


def analyze_match_burning(power_stream: Sequence[float], threshold: Optional[float],
                          min_duration: int = 10) -> Optional[Dict[str, Any]]:
    """
    Detect surges strictly above a threshold lasting at least `min_duration` seconds

    Args:
        power_stream: Per-second power in watts (at least 60 samples)
        threshold: Critical power or FTP in watts
        min_duration: Shortest surge counted, in seconds

    Returns:
        Match summary (at most 20 matches listed) or None
    """
    if min_duration < 1:
        raise InvalidParameterError("min_duration must be at least 1 second", {"min_duration": min_duration})

    power = _as_array(power_stream)
    if power.size < MIN_MATCH_SAMPLES or not threshold:
        return None

    matches: List[Dict[str, Any]] = []
    start = None
    for i, value in enumerate(power):
        if value > threshold:
            if start is None:
                start = i
        elif start is not None:
            if i - start >= min_duration:
                matches.append(_close_match(power, start, i, threshold))
            start = None
    if start is not None and power.size - start >= min_duration:
        matches.append(_close_match(power, start, power.size, threshold))

    total_time = sum(m["duration_sec"] for m in matches)
    total_work = sum(m["work_above_threshold_kj"] for m in matches)

    return {
        "match_count": len(matches),
        "total_time_above_threshold_sec": total_time,
        "total_work_above_threshold_kj": round(total_work, 1),
        "avg_match_duration_sec": int(round(total_time / len(matches))) if matches else 0,
        "peak_match_watts": max(m["peak_watts"] for m in matches) if matches else 0,
        "matches": matches[:MATCH_LIST_LIMIT],
    }


def analyze_fatigue_resistance(power_stream: Sequence[float],
                               hr_stream: Optional[Sequence[float]] = None) -> Optional[Dict[str, Any]]:
    """
    How well power holds up over a ride of at least 10 minutes

    Compares the last quarter to the first, reports power by decile, and
    when a heart rate stream covers at least 90% of the ride, the drift of
    the power-to-heart-rate ratio.
    """
    power = _as_array(power_stream)
    length = power.size
    if length < MIN_FATIGUE_SAMPLES:
        return None

    q1_avg = _mean_non_zero(power[:int(length * 0.25)])
    q4_avg = _mean_non_zero(power[int(length * 0.75):])
    index = _round2(q4_avg / q1_avg) if q1_avg > 0 else 1.0

    decile_len = length // 10
    deciles = []
    for i in range(10):
        end = length if i == 9 else (i + 1) * decile_len
        deciles.append(int(round(_mean_non_zero(power[i * decile_len:end]))))

    cardiac_drift = None
    hr = _as_array(hr_stream)
    if hr.size and hr.size >= length * 0.9:
        hr_q1 = _mean_non_zero(hr[:int(hr.size * 0.25)])
        hr_q4 = _mean_non_zero(hr[int(hr.size * 0.75):])
        ratio_first = q1_avg / hr_q1 if hr_q1 > 0 else None
        ratio_last = q4_avg / hr_q4 if hr_q4 > 0 else None
        if ratio_first and ratio_last:
            cardiac_drift = {
                "pw_hr_ratio_first_quarter": _round2(ratio_first),
                "pw_hr_ratio_last_quarter": _round2(ratio_last),
                "drift_percent": int(round((ratio_first - ratio_last) / ratio_first * 100)),
            }

    if index >= 0.98:
        rating = "excellent"
    elif index >= 0.93:
        rating = "good"
    elif index >= 0.85:
        rating = "moderate"
    else:
        rating = "poor"

    return {
        "fatigue_resistance_index": index,
        "rating": rating,
        "first_quarter_avg_watts": int(round(q1_avg)),
        "last_quarter_avg_watts": int(round(q4_avg)),
        "power_deciles": deciles,
        "cardiac_drift": cardiac_drift,
    }


def _valid_heart_rate(hr: np.ndarray) -> np.ndarray:
    return hr[(hr >= VALID_HR_MIN) & (hr <= VALID_HR_MAX)]


def analyze_hr_zones(hr_stream: Sequence[float], max_hr: Optional[float],
                     resting_hr: float = 50) -> Optional[Dict[str, Any]]:
    """
    Time in each heart rate zone as a share of max HR

    Samples outside 40-250 bpm are ignored.
    """
    hr = _as_array(hr_stream)
    if hr.size < MIN_HR_SAMPLES or not max_hr:
        return None

    valid = _valid_heart_rate(hr)
    if valid.size == 0:
        return None

    pct_max = valid / max_hr
    zones = []
    for name, lower, upper in HR_ZONES:
        seconds = int(np.count_nonzero((pct_max >= lower) & (pct_max < upper)))
        zones.append({
            "name": name,
            "seconds": seconds,
            "percent": int(round(seconds / valid.size * 100)),
        })

    avg_hr = int(round(float(valid.mean())))
    hrr_percent = None
    if resting_hr is not None and max_hr > resting_hr:
        hrr_percent = int(round((avg_hr - resting_hr) / (max_hr - resting_hr) * 100))

    return {
        "zones": zones,
        "avg_hr": avg_hr,
        "peak_hr": int(valid.max()),
        "hrr_percent": hrr_percent,
        "total_valid_seconds": int(valid.size),
    }


def analyze_cadence(cadence_stream: Sequence[float],
                    power_stream: Optional[Sequence[float]] = None) -> Optional[Dict[str, Any]]:
    """Cadence distribution, variability and average power per 10 rpm band"""
    cadence = _as_array(cadence_stream)
    if cadence.size < MIN_CADENCE_SAMPLES:
        return None

    pedaling = cadence[(cadence > 0) & (cadence < MAX_VALID_CADENCE)]
    if pedaling.size < MIN_PEDALING_SAMPLES:
        return None

    avg_cadence = int(round(float(pedaling.mean())))
    coasting = int(np.count_nonzero(cadence == 0))

    distribution = []
    for label, lower, upper in CADENCE_BUCKETS:
        seconds = int(np.count_nonzero((pedaling >= lower) & (pedaling < upper)))
        distribution.append({
            "label": label,
            "seconds": seconds,
            "percent": int(round(seconds / pedaling.size * 100)),
        })

    # variability is measured around the rounded average
    std_dev = float(np.sqrt(np.mean((pedaling - avg_cadence) ** 2)))
    cv = int(round(std_dev / avg_cadence * 100)) if avg_cadence > 0 else 0

    correlation = None
    power = _as_array(power_stream)
    if power.size and power.size >= cadence.size * 0.9:
        n = min(cadence.size, power.size)
        c, p = cadence[:n], power[:n]
        mask = (c > 0) & (c < MAX_VALID_CADENCE) & (p > 0) & (p < MAX_VALID_POWER)
        bins = (np.floor(c[mask] / 10) * 10).astype(int)
        powers = p[mask]
        correlation = []
        for band in np.unique(bins):
            band_power = powers[bins == band]
            if band_power.size < 10:
                continue
            correlation.append({
                "cadence_range": f"{band}-{band + 10}",
                "avg_power": int(round(float(band_power.mean()))),
                "sample_count": int(band_power.size),
            })

    return {
        "avg_cadence": avg_cadence,
        "peak_cadence": int(pedaling.max()),
        "coasting_seconds": coasting,
        "coasting_percent": int(round(coasting / cadence.size * 100)),
        "variability_cv": cv,
        "distribution": distribution,
        "cadence_power_correlation": correlation,
    }


def compute_ride_analytics(power: Optional[Sequence[float]] = None,
                           hr: Optional[Sequence[float]] = None,
                           cadence: Optional[Sequence[float]] = None,
                           ftp: Optional[float] = None,
                           cp: Optional[float] = None,
                           max_hr: Optional[float] = None,
                           resting_hr: Optional[float] = None) -> Optional[Dict[str, Any]]:
    """
    Run every analysis the available signals allow

    Match burning uses critical power when known, otherwise FTP.

    Returns:
        Dictionary of analysis sections, or None when nothing could be computed
    """
    result: Dict[str, Any] = {}
    power_array = _as_array(power)
    has_power = power_array.size >= MIN_PACING_SAMPLES
    normalized_power = _normalized_power(power_array) if has_power else None

    if has_power:
        result["pacing"] = analyze_pacing(power, ftp)
        result["fatigue_resistance"] = analyze_fatigue_resistance(power, hr)

        threshold = cp or ftp
        if threshold:
            result["match_burning"] = analyze_match_burning(power, threshold)

        avg_power = _mean_non_zero(power_array)
        if normalized_power and avg_power > 0:
            result["variability_index"] = _round2(normalized_power / avg_power)

    if hr is not None and max_hr:
        result["hr_zones"] = analyze_hr_zones(hr, max_hr, resting_hr if resting_hr is not None else 50)

        if normalized_power:
            hr_array = _as_array(hr)
            valid = hr_array[(hr_array >= VALID_HR_MIN) & (hr_array < VALID_HR_MAX)]
            if valid.size:
                result["efficiency_factor"] = _round2(normalized_power / float(valid.mean()))

    if cadence is not None:
        result["cadence_analysis"] = analyze_cadence(cadence, power)

    result = {key: value for key, value in result.items() if value is not None}
    return result or None


def analyze_activity(activity: Activity,
                     preferences: Optional[AthletePreferences] = None) -> Optional[AnalyticsResult]:
    """
    Per-ride analytics for an activity carrying streams

    Thresholds come from the athlete's preferences when available.
    """
    prefs = preferences or AthletePreferences(
        athlete_id=activity.athlete_id, resting_hr=get_load_config().default_resting_hr
    )
    data = compute_ride_analytics(
        power=activity.power_stream,
        hr=activity.heartrate_stream,
        cadence=activity.cadence_stream,
        ftp=prefs.ftp,
        cp=prefs.critical_power,
        max_hr=prefs.max_hr,
        resting_hr=prefs.resting_hr,
    )
    if data is None:
        logger.debug(f"No ride analytics for activity {activity.id}: insufficient streams")
        return None

    return AnalyticsResult(
        analytics_type=AnalyticsType.RIDE_ANALYTICS,
        data=data,
        metadata={
            "activity_id": activity.id,
            "athlete_id": activity.athlete_id,
            "ftp": prefs.ftp,
            "critical_power": prefs.critical_power,
            "max_hr": prefs.max_hr,
        },
    )
