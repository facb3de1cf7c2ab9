"""Domain models for StudyTrack CLI."""

from .config_models import APIConfig, AppConfig, TimerConfig

__all__ = [
    "AppConfig",
    "APIConfig",
    "TimerConfig",
]
