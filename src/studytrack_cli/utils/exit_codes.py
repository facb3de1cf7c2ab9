"""
Exit codes for StudyTrack CLI.

Semantic exit codes so scripts wrapping the CLI can tell what happened
and take the appropriate action.
"""

# Success
SUCCESS = 0

# General error (unspecified), also invalid timer transitions
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Authentication failure (missing or rejected token)
ERROR_AUTH_FAILURE = 3

# Network or API error (server unreachable, timeout, etc.)
ERROR_NETWORK = 4

# Resource not found
ERROR_NOT_FOUND = 5


def get_exit_code_name(code: int) -> str:
    """Get the name of an exit code for display purposes."""
    code_names = {
        SUCCESS: "SUCCESS",
        ERROR_GENERAL: "ERROR_GENERAL",
        ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
        ERROR_AUTH_FAILURE: "ERROR_AUTH_FAILURE",
        ERROR_NETWORK: "ERROR_NETWORK",
        ERROR_NOT_FOUND: "ERROR_NOT_FOUND",
    }
    return code_names.get(code, f"UNKNOWN({code})")
