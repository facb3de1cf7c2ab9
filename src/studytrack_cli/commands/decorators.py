"""Decorators for command functions."""

import asyncio
import functools
import inspect
import time
import traceback
from collections.abc import Callable

import typer

from studytrack_cli.models.timer.errors import TimerError
from studytrack_cli.utils.exit_codes import get_exit_code_name
from studytrack_cli.utils.logger import get_logger
from studytrack_cli.utils.ui.formatters import format_error


def command_wrapper(func: Callable):
    """Log the command, run it (sync or async) and map errors to exit codes."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger()
        cmd = func.__name__
        start = time.monotonic()
        logger.info("command started: %s", cmd)
        try:
            if inspect.iscoroutinefunction(func):
                result = asyncio.run(func(*args, **kwargs))
            else:
                result = func(*args, **kwargs)

            elapsed = time.monotonic() - start
            logger.info("command completed: %s (%.3fs)", cmd, elapsed)
            return result

        except TimerError as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) [%s] - %s",
                cmd,
                elapsed,
                get_exit_code_name(e.exit_code),
                str(e),
            )
            format_error(str(e))
            raise typer.Exit(code=e.exit_code) from e

        except typer.Exit:
            raise

        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "command failed: %s (%.3fs) - %s\n%s",
                cmd,
                elapsed,
                str(e),
                traceback.format_exc(),
            )
            format_error(f"An unexpected error occurred: {str(e)}")
            raise typer.Exit(code=1) from e

    return wrapper
