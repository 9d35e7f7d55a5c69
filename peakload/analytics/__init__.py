#!/usr/bin/env python3
"""
Analytics
"""

from .interface import (
    AnalyticsType, StressMethod, StressEstimate, AnalyticsResult,
    AnalyticsError, InvalidParameterError
)

from .tss import StressEstimator, estimate_stress, estimate_stress_breakdown

from .load import (
    calculate_ctl, calculate_atl, calculate_tsb,
    build_daily_stress_series, get_week_start,
    compute_load_trend, compute_fitness_trend
)

from .ride import (
    calculate_normalized_power, analyze_pacing, analyze_match_burning,
    analyze_fatigue_resistance, analyze_hr_zones, analyze_cadence,
    compute_ride_analytics, analyze_activity
)

from .longitudinal import (
    collect_best_efforts, estimate_dynamic_ftp, track_mmp_progression,
    calculate_training_monotony_strain, score_workout_execution
)

__all__ = [
    # Data structures
    'AnalyticsType', 'StressMethod', 'StressEstimate', 'AnalyticsResult',

    # Exceptions
    'AnalyticsError', 'InvalidParameterError',

    # Training stress
    'StressEstimator', 'estimate_stress', 'estimate_stress_breakdown',

    # Load aggregation
    'calculate_ctl', 'calculate_atl', 'calculate_tsb',
    'build_daily_stress_series', 'get_week_start',
    'compute_load_trend', 'compute_fitness_trend',

    # Per-ride analytics
    'calculate_normalized_power', 'analyze_pacing', 'analyze_match_burning',
    'analyze_fatigue_resistance', 'analyze_hr_zones', 'analyze_cadence',
    'compute_ride_analytics', 'analyze_activity',

    # Longitudinal analytics
    'collect_best_efforts', 'estimate_dynamic_ftp', 'track_mmp_progression',
    'calculate_training_monotony_strain', 'score_workout_execution',
]
