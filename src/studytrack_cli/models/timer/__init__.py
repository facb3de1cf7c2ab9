"""Resumable study timer: countdown (Pomodoro) and count-up sessions."""

from .clock import Clock, SystemClock
from .engine import TimerEngine
from .errors import (
    NetworkError,
    PersistenceError,
    StateError,
    TimerError,
    ValidationError,
)
from .gateway import SessionGateway
from .policy import CountdownPolicy, CountUpPolicy, TimerPolicy, policy_for
from .state import (
    StartConfig,
    StopResult,
    TimerEvent,
    TimerMode,
    TimerReading,
    TimerSnapshot,
    TimerStatus,
)
from .store import FileSnapshotStore, InMemorySnapshotStore, PersistenceStore

__all__ = [
    "Clock",
    "SystemClock",
    "TimerEngine",
    "TimerError",
    "ValidationError",
    "NetworkError",
    "PersistenceError",
    "StateError",
    "SessionGateway",
    "TimerPolicy",
    "CountdownPolicy",
    "CountUpPolicy",
    "policy_for",
    "StartConfig",
    "StopResult",
    "TimerEvent",
    "TimerMode",
    "TimerReading",
    "TimerSnapshot",
    "TimerStatus",
    "PersistenceStore",
    "FileSnapshotStore",
    "InMemorySnapshotStore",
]
