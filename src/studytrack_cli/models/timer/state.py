"""Timer state types and the persisted snapshot."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Literal

from .errors import NetworkError

TimerMode = Literal["countdown", "count_up"]
TimerStatus = Literal["idle", "running", "paused", "completed"]
TimerEventKind = Literal["completed", "end_failed", "restored", "persistence_failed"]

TIMER_MODES: tuple[TimerMode, ...] = ("countdown", "count_up")

# Backend session types: 1 = Pomodoro, 2 = Normal
SESSION_TYPES: dict[TimerMode, int] = {"countdown": 1, "count_up": 2}

MIN_COUNTDOWN_MINUTES = 1
MAX_COUNTDOWN_MINUTES = 120

# Statuses that are ever written to a snapshot
PERSISTED_STATUSES = ("running", "paused")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp, accepting a trailing 'Z'.

    Naive values are taken as local time.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def format_clock(seconds: int) -> str:
    """Render seconds as MM:SS, or H:MM:SS past the hour."""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    mins, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins:02d}:{secs:02d}"


@dataclass
class StartConfig:
    """Options for starting a timer session."""

    topic_id: int | None = None
    notes: str | None = None
    target_duration_seconds: int | None = None


@dataclass
class TimerSnapshot:
    """Restorable state of a running or paused timer."""

    mode: TimerMode
    status: TimerStatus
    remote_session_id: int
    start_timestamp: str | None  # ISO 8601, only while running
    accumulated_seconds: int = 0
    target_duration_seconds: int | None = None
    topic_id: int | None = None
    notes: str | None = None

    @property
    def start_datetime(self) -> datetime | None:
        """Parse start timestamp as datetime."""
        if self.start_timestamp:
            return parse_timestamp(self.start_timestamp)
        return None

    def validate(self) -> None:
        """Raise ValueError if the snapshot breaks a state invariant."""
        if self.mode not in TIMER_MODES:
            raise ValueError(f"Unknown timer mode: {self.mode!r}")
        if self.status not in PERSISTED_STATUSES:
            raise ValueError(f"Status {self.status!r} is never persisted")
        if self.remote_session_id is None:
            raise ValueError("Snapshot has no remote session id")
        if self.accumulated_seconds < 0:
            raise ValueError("accumulated_seconds must be non-negative")
        if (self.status == "running") != (self.start_timestamp is not None):
            raise ValueError("start_timestamp must be set only while running")
        if self.mode == "countdown" and not self.target_duration_seconds:
            raise ValueError("Countdown snapshot needs a target duration")
        if self.start_timestamp is not None:
            parse_timestamp(self.start_timestamp)

    def to_dict(self) -> dict:
        """Convert to the camelCase storage format."""
        data = asdict(self)
        return {
            "mode": data["mode"],
            "status": data["status"],
            "startTimestamp": data["start_timestamp"],
            "accumulatedSeconds": data["accumulated_seconds"],
            "remoteSessionId": data["remote_session_id"],
            "targetDurationSeconds": data["target_duration_seconds"],
            "topicId": data["topic_id"],
            "notes": data["notes"],
        }

    @classmethod
    def from_dict(cls, data: dict) -> TimerSnapshot:
        """Create from the camelCase storage format."""
        snapshot = cls(
            mode=data["mode"],
            status=data["status"],
            remote_session_id=data["remoteSessionId"],
            start_timestamp=data.get("startTimestamp"),
            accumulated_seconds=int(data.get("accumulatedSeconds", 0)),
            target_duration_seconds=data.get("targetDurationSeconds"),
            topic_id=data.get("topicId"),
            notes=data.get("notes"),
        )
        snapshot.validate()
        return snapshot


@dataclass(frozen=True)
class TimerReading:
    """What a consumer renders on every tick.

    ``display_seconds`` is the clock value chosen by the mode's policy.
    """

    mode: TimerMode
    status: TimerStatus
    elapsed_seconds: int
    remaining_seconds: int | None = None
    remote_session_id: int | None = None
    display_seconds: int = 0

    def format_clock(self) -> str:
        return format_clock(self.display_seconds)


@dataclass(frozen=True)
class StopResult:
    """Outcome of closing a session."""

    remote_session_id: int
    duration_seconds: int
    saved: bool
    error: NetworkError | None = None


@dataclass(frozen=True)
class TimerEvent:
    """Message published on an engine's event channel."""

    kind: TimerEventKind
    mode: TimerMode
    remote_session_id: int | None = None
    duration_seconds: int | None = None
    error: Exception | None = None
    message: str = ""
