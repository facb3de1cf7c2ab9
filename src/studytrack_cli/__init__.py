"""StudyTrack CLI - study session timers backed by the StudyTrack API."""

__version__ = "0.1.0"
