#!/usr/bin/env python3
"""
Training Load Aggregation

Chronic Training Load (CTL, "fitness") and Acute Training Load (ATL,
"fatigue") are exponentially weighted averages of daily training stress with
time constants of 42 and 7 days. Training Stress Balance (TSB, "form") is
their difference.

Every day in the window gets weight exp(-decay × age_in_days), with the most
recent day at age 0. The weighted sum is divided by the total weight, so a
constant daily stress of S yields a load of S regardless of window length.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Sequence, Union

import numpy as np
from dateutil.parser import parse as parse_date

from ..config import get_load_config
from ..exceptions import validation_error
from ..storage.model import Activity
from .tss import estimate_stress


DateLike = Union[date, datetime, str]


def _to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return parse_date(value).date()
    except (ValueError, OverflowError, TypeError) as e:
        raise validation_error(f"Invalid date: {value!r}", value=str(value), reason=str(e))


def _weighted_load(daily: Sequence[float], time_constant: float) -> int:
    if len(daily) == 0:
        return 0
    decay = 1.0 / time_constant
    values = np.asarray(daily, dtype=float)
    ages = np.arange(len(values) - 1, -1, -1, dtype=float)
    weights = np.exp(-decay * ages)
    return int(round(float(np.sum(values * weights) / np.sum(weights))))


def calculate_ctl(daily: Sequence[float], time_constant: float = None) -> int:
    """
    Chronic Training Load over a daily stress series (oldest first)

    Args:
        daily: Daily stress totals, oldest to newest
        time_constant: Override for the 42-day time constant

    Returns:
        Rounded CTL; 0 for an empty series
    """
    if time_constant is None:
        time_constant = get_load_config().ctl_time_constant_days
    return _weighted_load(daily, time_constant)


def calculate_atl(daily: Sequence[float], time_constant: float = None) -> int:
    """Acute Training Load; callers pass the trailing 7 days"""
    if time_constant is None:
        time_constant = get_load_config().atl_time_constant_days
    return _weighted_load(daily, time_constant)


def calculate_tsb(ctl: float, atl: float) -> int:
    """Training Stress Balance"""
    return int(round(ctl - atl))


def get_week_start(value: DateLike) -> date:
    """Monday of the ISO week containing the given date"""
    day = _to_date(value)
    return day - timedelta(days=day.weekday())


def build_daily_stress_series(activities: Iterable[Activity], end_date: DateLike,
                              days: int = None) -> List[float]:
    """
    Dense daily stress totals for the `days` days before `end_date`

    Args:
        activities: Activities to bucket by start date
        end_date: Exclusive end; the last element is the day before it
        days: Window length (defaults to the configured history window)

    Returns:
        List of length `days`, oldest first, missing days as 0
    """
    if days is None:
        days = get_load_config().history_days
    end = _to_date(end_date)
    series = [0.0] * days

    for activity in activities:
        offset = (end - activity.start_date).days
        if 1 <= offset <= days:
            series[days - offset] += estimate_stress(activity)

    return series


def compute_load_trend(daily: Sequence[float]) -> str:
    """Direction of the last 14 days of stress against the 14 before"""
    if len(daily) < 28:
        return "building"

    recent = float(sum(daily[-14:]))
    prior = float(sum(daily[-28:-14]))
    if prior == 0:
        return "building"

    change = (recent - prior) / prior
    if change > 0.15:
        return "building"
    if change < -0.30:
        return "declining"
    if change < -0.15:
        return "recovering"
    return "maintaining"


def compute_fitness_trend(ctl: float, weekly_daily_avg: float) -> str:
    """Whether this week's daily load is above or below current fitness"""
    if weekly_daily_avg > ctl * 1.1:
        return "improving"
    if weekly_daily_avg < ctl * 0.8:
        return "declining"
    return "stable"
