#!/usr/bin/env python3
"""
Training Stress Score (TSS) Estimation

Training Stress Score is a single number combining the duration and intensity
of a workout. Providers that measure power against a threshold usually declare
it; when they do, that value is trusted unmodified. Otherwise it is estimated
from the summary fields of the activity:

1. Running: duration and climbing, scaled by a pace band or heart rate band
   (whichever indicates the harder effort), with a bonus for trail running.
2. Cycling with work done: kilojoules per hour, scaled to TSS.
3. Cycling without work: duration and climbing, scaled by average power
   relative to a 150 W reference when power is known.

Formulas:
- Running base   = hours × 60 + (elevation_m / 200) × 10
- Cycling (kJ)   = (kJ / hours) / 1.2
- Cycling (base) = hours × 50 + (elevation_m / 300) × 10
"""

from typing import Optional

from ..storage.model import Activity
from .interface import StressEstimate, StressMethod
from ..utils import get_logger


logger = get_logger(__name__)


# (upper pace bound in min/km, multiplier); slower than the last bound gets the fallback
RUNNING_PACE_BANDS = [
    (3.75, 1.6),
    (4.25, 1.4),
    (4.75, 1.2),
    (5.25, 1.0),
    (6.0, 0.85),
    (7.0, 0.7),
]
RUNNING_PACE_FALLBACK = 0.55

# (lower heart rate bound in bpm, multiplier)
RUNNING_HR_BANDS = [
    (175, 1.5),
    (160, 1.2),
    (145, 1.0),
    (130, 0.8),
]

TRAIL_MULTIPLIER = 1.1
REFERENCE_WATTS = 150.0
POWER_SCALE_MIN = 0.5
POWER_SCALE_MAX = 1.8


class StressEstimator:
    """Training Stress Score estimator"""

    @staticmethod
    def speed_to_pace_per_km(speed_ms: float) -> float:
        """
        Convert speed in m/s to pace in minutes per kilometer

        Args:
            speed_ms: Speed in meters per second

        Returns:
            Pace in minutes per kilometer
        """
        if speed_ms <= 0:
            return float('inf')

        # pace (min/km) = 60 / speed (km/h)
        speed_kmh = speed_ms * 3.6
        return 60.0 / speed_kmh

    @staticmethod
    def format_pace(pace_min_per_km: float) -> str:
        """Format pace as MM:SS per km"""
        if pace_min_per_km == float('inf'):
            return "∞:∞"

        minutes = int(pace_min_per_km)
        seconds = int((pace_min_per_km - minutes) * 60)
        return f"{minutes}:{seconds:02d}"

    @staticmethod
    def pace_multiplier(pace_min_per_km: Optional[float]) -> float:
        """Step-function multiplier for running pace; 1.0 when pace is unknown"""
        if pace_min_per_km is None:
            return 1.0
        for upper_bound, multiplier in RUNNING_PACE_BANDS:
            if pace_min_per_km < upper_bound:
                return multiplier
        return RUNNING_PACE_FALLBACK

    @staticmethod
    def heart_rate_multiplier(average_heartrate: Optional[float]) -> Optional[float]:
        """Step-function multiplier for running heart rate; None below the lowest band"""
        if not average_heartrate:
            return None
        for lower_bound, multiplier in RUNNING_HR_BANDS:
            if average_heartrate >= lower_bound:
                return multiplier
        return None

    @staticmethod
    def _duration_seconds(activity: Activity) -> float:
        return activity.moving_time or activity.elapsed_time or 0

    def estimate(self, activity: Activity) -> StressEstimate:
        """
        Estimate training stress for one activity

        Args:
            activity: Canonical activity

        Returns:
            StressEstimate with the rounded value and the method used
        """
        if activity.tss is not None and activity.tss > 0:
            return StressEstimate(int(round(activity.tss)), StressMethod.DECLARED,
                                  {'declared_tss': activity.tss})

        duration = self._duration_seconds(activity)
        if duration <= 0:
            return StressEstimate(0, StressMethod.NONE)

        if activity.is_running:
            return self._estimate_running(activity, duration)
        return self._estimate_cycling(activity, duration)

    def _estimate_running(self, activity: Activity, duration: float) -> StressEstimate:
        hours = duration / 3600
        elevation = activity.total_elevation_gain or 0
        base = hours * 60 + (elevation / 200) * 10

        pace = None
        if activity.distance:
            pace = (duration / 60) / (activity.distance / 1000)

        multiplier = self.pace_multiplier(pace)
        method = StressMethod.RUNNING_PACE

        hr_multiplier = self.heart_rate_multiplier(activity.average_heartrate)
        if hr_multiplier is not None and hr_multiplier > multiplier:
            multiplier = hr_multiplier
            method = StressMethod.RUNNING_HR

        if activity.is_trail_run:
            multiplier *= TRAIL_MULTIPLIER

        inputs = {
            'hours': round(hours, 3),
            'elevation_m': elevation,
            'pace_min_per_km': round(pace, 2) if pace is not None else None,
            'multiplier': round(multiplier, 3),
        }
        return StressEstimate(int(round(base * multiplier)), method, inputs)

    def _estimate_cycling(self, activity: Activity, duration: float) -> StressEstimate:
        hours = duration / 3600

        if activity.kilojoules and activity.moving_time:
            moving_hours = activity.moving_time / 3600
            value = (activity.kilojoules / moving_hours) / 1.2
            return StressEstimate(int(round(value)), StressMethod.KILOJOULES,
                                  {'kilojoules': activity.kilojoules, 'hours': round(moving_hours, 3)})

        elevation = activity.total_elevation_gain or 0
        base = hours * 50 + (elevation / 300) * 10
        inputs = {'hours': round(hours, 3), 'elevation_m': elevation}

        if activity.average_watts:
            scale = min(max(activity.average_watts / REFERENCE_WATTS, POWER_SCALE_MIN), POWER_SCALE_MAX)
            inputs['power_scale'] = round(scale, 3)
            return StressEstimate(int(round(base * scale)), StressMethod.DURATION_POWER, inputs)

        return StressEstimate(int(round(base)), StressMethod.DURATION, inputs)


_estimator = StressEstimator()


def estimate_stress_breakdown(activity: Activity) -> StressEstimate:
    """Estimated stress plus the method that produced it"""
    estimate = _estimator.estimate(activity)
    logger.debug(f"TSS {estimate.value} for activity {activity.id} via {estimate.method.value}")
    return estimate


def estimate_stress(activity: Activity) -> int:
    """Training stress for one activity, rounded to an integer"""
    return _estimator.estimate(activity).value
