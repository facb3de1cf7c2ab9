"""Error taxonomy for the study timer."""

from studytrack_cli.utils.exit_codes import (
    ERROR_AUTH_FAILURE,
    ERROR_GENERAL,
    ERROR_INVALID_ARGS,
    ERROR_NETWORK,
)


class TimerError(Exception):
    """Base class for timer failures, carries a CLI exit code."""

    exit_code = ERROR_GENERAL


class ValidationError(TimerError):
    """Start configuration rejected before any state change."""

    exit_code = ERROR_INVALID_ARGS


class NetworkError(TimerError):
    """A session gateway call failed."""

    exit_code = ERROR_NETWORK

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
        if status_code in (401, 403):
            self.exit_code = ERROR_AUTH_FAILURE


class PersistenceError(TimerError):
    """Snapshot could not be read or written."""


class StateError(TimerError):
    """Operation not allowed in the current timer status."""
