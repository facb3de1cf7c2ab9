"""Services module for StudyTrack CLI - configuration, API access and timers."""
