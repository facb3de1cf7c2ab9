"""Configuration models for StudyTrack CLI."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class APIConfig(BaseModel):
    """API configuration."""

    endpoint: str = Field(default="https://api.studytrack.app/api")
    timeout: int = Field(default=30)
    retry: int = Field(default=3)
    session_start_path: str = Field(default="/session/start")
    session_end_path: str = Field(default="/session/end")
    session_delete_path: str = Field(
        default="/session/{id}", description="Used when discarded sessions are deleted"
    )

    @field_validator("endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Reject empty endpoints."""
        if not v or not v.strip():
            raise ValueError("endpoint cannot be empty")
        return v.strip()


class TimerConfig(BaseModel):
    """Study timer behaviour."""

    default_countdown_minutes: int = Field(default=25, ge=1, le=120)
    tick_interval: float = Field(default=1.0, gt=0)
    credit_overrun: bool = Field(
        default=True,
        description="Report real elapsed time when a countdown finished offline",
    )
    delete_discarded_sessions: bool = Field(default=False)
    state_dir: str | None = Field(
        default=None, description="Snapshot directory (defaults to the user data dir)"
    )


class AppConfig(BaseModel):
    """Main StudyTrack configuration."""

    api: APIConfig = Field(default_factory=APIConfig)
    timer: TimerConfig = Field(default_factory=TimerConfig)
