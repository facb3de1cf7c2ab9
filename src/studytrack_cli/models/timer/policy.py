"""Countdown and count-up behaviour shared by one timer engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from .errors import ValidationError
from .state import MAX_COUNTDOWN_MINUTES, MIN_COUNTDOWN_MINUTES, TimerMode


class TimerPolicy(Protocol):
    """Display computation and completion predicate for a timer mode."""

    mode: TimerMode
    target_duration_seconds: int | None

    def remaining(self, elapsed_seconds: int) -> int | None: ...

    def display(self, elapsed_seconds: int) -> int: ...

    def is_complete(self, elapsed_seconds: int) -> bool: ...


@dataclass(frozen=True)
class CountdownPolicy:
    """Pomodoro: counts down from a target and completes at zero."""

    target_duration_seconds: int
    mode: TimerMode = "countdown"

    def remaining(self, elapsed_seconds: int) -> int:
        return max(0, self.target_duration_seconds - elapsed_seconds)

    def display(self, elapsed_seconds: int) -> int:
        return self.remaining(elapsed_seconds)

    def is_complete(self, elapsed_seconds: int) -> bool:
        return self.target_duration_seconds - elapsed_seconds <= 0


@dataclass(frozen=True)
class CountUpPolicy:
    """Stopwatch: counts up without bound, only an explicit stop ends it."""

    target_duration_seconds: None = None
    mode: TimerMode = "count_up"

    def remaining(self, elapsed_seconds: int) -> None:
        return None

    def display(self, elapsed_seconds: int) -> int:
        return elapsed_seconds

    def is_complete(self, elapsed_seconds: int) -> bool:
        return False


def validate_countdown_target(target_duration_seconds: int | None) -> int:
    """Check a countdown target lies within 1-120 minutes."""
    if target_duration_seconds is None:
        raise ValidationError("Countdown timers need a target duration")
    minutes = target_duration_seconds / 60
    if not MIN_COUNTDOWN_MINUTES <= minutes <= MAX_COUNTDOWN_MINUTES:
        raise ValidationError(
            f"Duration must be between {MIN_COUNTDOWN_MINUTES} and "
            f"{MAX_COUNTDOWN_MINUTES} minutes, got {minutes:g}"
        )
    return int(target_duration_seconds)


def policy_for(mode: TimerMode, target_duration_seconds: int | None = None) -> TimerPolicy:
    """Build the policy for a mode."""
    if mode == "countdown":
        return CountdownPolicy(validate_countdown_target(target_duration_seconds))
    if mode == "count_up":
        return CountUpPolicy()
    raise ValueError(f"Unknown timer mode: {mode!r}")
