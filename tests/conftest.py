#!/usr/bin/env python3
"""
Shared fixtures for the PeakLoad test suite.
"""

import numpy as np
import pytest

from peakload.config import Settings
from peakload.storage import AthletePreferences, InMemoryStorage

from .factories import ATHLETE_ID, NOW


@pytest.fixture
def athlete_id():
    return ATHLETE_ID


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def clock():
    """Fixed clock for deterministic services"""
    return lambda: NOW


@pytest.fixture
def settings():
    """Default settings independent of the environment"""
    return Settings()


@pytest.fixture
def storage():
    """Fresh in-memory storage"""
    return InMemoryStorage()


@pytest.fixture
def preferences(storage):
    """Stored preferences for the test athlete"""
    prefs = AthletePreferences(athlete_id=ATHLETE_ID, ftp=250, max_hr=190, resting_hr=50)
    storage.set_preferences(prefs)
    return prefs


@pytest.fixture
def flat_power():
    """Ten minutes at a constant 200 W"""
    return [200.0] * 600


@pytest.fixture
def ramp_power():
    """Linear ramp from 100 W to 300 W over 20 minutes"""
    return list(np.linspace(100, 300, 1200))
