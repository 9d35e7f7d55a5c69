#!/usr/bin/env python3
"""
Test suite for environment-driven configuration.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError as ModelValidationError

from peakload.config import DedupConfig, LoadModelConfig, Settings
from peakload.exceptions import ConfigurationError
from peakload.utils import setup_logging


class TestLoadModelConfig:
    """Training load model settings"""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = LoadModelConfig()
        assert config.ctl_time_constant_days == 42
        assert config.atl_time_constant_days == 7
        assert config.history_days == 90

    def test_environment_override(self):
        with patch.dict(os.environ, {"PEAKLOAD_CTL_DAYS": "28", "PEAKLOAD_HISTORY_DAYS": "120"}):
            config = LoadModelConfig()
        assert config.ctl_time_constant_days == 28
        assert config.history_days == 120

    def test_rejects_non_positive_window(self):
        with pytest.raises(ModelValidationError):
            LoadModelConfig(atl_time_constant_days=0)


class TestDedupConfig:
    """Duplicate detection settings"""

    def test_provider_priority(self):
        config = DedupConfig()
        assert config.priority_for("garmin") > config.priority_for("wahoo")
        assert config.priority_for("Wahoo") > config.priority_for("strava")
        assert config.priority_for("strava") > config.priority_for("manual")
        assert config.priority_for("polar") == 0
        assert config.priority_for(None) == 0

    @pytest.mark.parametrize("distance, expected", [(5000, 100.0), (10000, 100.0), (42195, 421.95)])
    def test_distance_tolerance(self, distance, expected):
        assert DedupConfig().distance_tolerance(distance) == pytest.approx(expected)

    def test_window_override(self):
        with patch.dict(os.environ, {"PEAKLOAD_DEDUP_WINDOW_SECONDS": "600"}):
            assert DedupConfig().time_window_seconds == 600


class TestSettings:
    """Combined settings"""

    def test_to_dict_sections(self):
        data = Settings().to_dict()
        assert set(data) == {"environment", "debug", "load", "dedup", "logging"}
        assert data["dedup"]["time_window_seconds"] == DedupConfig().time_window_seconds

    def test_logging_override(self):
        with patch.dict(os.environ, {"PEAKLOAD_LOG_LEVEL": "DEBUG", "PEAKLOAD_LOG_FORMAT": "json"}):
            settings = Settings()
        assert settings.logging.level == "DEBUG"
        assert settings.logging.format == "json"


class TestLoggingSetup:
    """Structured logging configuration"""

    def test_rejects_unknown_format(self):
        with pytest.raises(ConfigurationError):
            setup_logging(level="INFO", format_type="xml")
