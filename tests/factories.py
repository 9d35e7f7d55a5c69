#!/usr/bin/env python3
"""
Test data builders for activities and streams.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List

from peakload.storage import Activity


ATHLETE_ID = "athlete-1"

# Wednesday; its ISO week starts Monday 2025-06-16
NOW = datetime(2025, 6, 18, 12, 0, tzinfo=timezone.utc)


def make_activity(start: datetime, **fields: Any) -> Activity:
    """Activity with sensible defaults for a one-hour ride"""
    data: Dict[str, Any] = {
        "athlete_id": ATHLETE_ID,
        "provider": "strava",
        "activity_type": "Ride",
        "start_time": start,
        "moving_time": 3600,
        "elapsed_time": 3700,
        "distance": 30000,
    }
    data.update(fields)
    return Activity(**data)


def daily_rides(start_day: date, days: int, tss: float = 50, **fields: Any) -> List[Activity]:
    """One ride per day at 08:00 UTC with a declared stress value"""
    first = datetime(start_day.year, start_day.month, start_day.day, 8, tzinfo=timezone.utc)
    return [
        make_activity(first + timedelta(days=i), tss=tss, provider_activity_id=f"ride-{i}", **fields)
        for i in range(days)
    ]
