"""
Configuration management for PeakLoad.

Configuration is loaded from environment variables (and a .env file when
present) with fallbacks to the defaults used by the training-load model.
"""

from typing import Dict, Any, Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

# Also try to load from the current working directory
load_dotenv()


DEFAULT_PROVIDER_PRIORITY: Dict[str, int] = {
    "garmin": 100,  # FIT files with device power data
    "wahoo": 90,
    "strava": 50,   # limited power data access
    "manual": 10,
}


class LoadModelConfig(BaseSettings):
    """Training load model configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    ctl_time_constant_days: int = Field(default=42, alias="PEAKLOAD_CTL_DAYS")
    atl_time_constant_days: int = Field(default=7, alias="PEAKLOAD_ATL_DAYS")
    history_days: int = Field(default=90, alias="PEAKLOAD_HISTORY_DAYS")
    default_resting_hr: int = Field(default=50, alias="PEAKLOAD_DEFAULT_RESTING_HR")
    mmp_window_days: int = Field(default=90, alias="PEAKLOAD_MMP_WINDOW_DAYS")

    @field_validator("ctl_time_constant_days", "atl_time_constant_days", "history_days", "mmp_window_days")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("time constants and windows must be positive")
        return value


class DedupConfig(BaseSettings):
    """Cross-provider duplicate detection configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    time_window_seconds: int = Field(default=300, alias="PEAKLOAD_DEDUP_WINDOW_SECONDS")
    distance_tolerance_ratio: float = Field(default=0.01, alias="PEAKLOAD_DEDUP_DISTANCE_RATIO")
    min_distance_tolerance_m: float = Field(default=100.0, alias="PEAKLOAD_DEDUP_MIN_DISTANCE_M")
    candidate_limit: int = Field(default=5)
    provider_priority: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_PROVIDER_PRIORITY))

    def priority_for(self, provider: str) -> int:
        """Priority for a provider; unknown providers rank 0."""
        if not provider:
            return 0
        return self.provider_priority.get(provider.lower(), 0)

    def distance_tolerance(self, distance_m: float) -> float:
        """Allowed distance difference for a ride of the given length."""
        return max(distance_m * self.distance_tolerance_ratio, self.min_distance_tolerance_m)


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="", populate_by_name=True)

    level: str = Field(default="INFO", alias="PEAKLOAD_LOG_LEVEL")
    format: str = Field(default="console", alias="PEAKLOAD_LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, alias="PEAKLOAD_LOG_FILE")


class Settings(BaseSettings):
    """Main settings combining all configuration sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="ignore"
    )

    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")

    load: LoadModelConfig = Field(default_factory=LoadModelConfig)
    dedup: DedupConfig = Field(default_factory=DedupConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten settings for diagnostics output."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "load": self.load.model_dump(),
            "dedup": self.dedup.model_dump(),
            "logging": self.logging.model_dump(),
        }


# Global settings instance
settings = Settings()


def get_load_config() -> LoadModelConfig:
    """Get training load model configuration."""
    return settings.load


def get_dedup_config() -> DedupConfig:
    """Get duplicate detection configuration."""
    return settings.dedup


def get_settings() -> Settings:
    """Get complete application settings."""
    return settings
