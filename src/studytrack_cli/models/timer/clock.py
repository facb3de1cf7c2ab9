"""Wall-clock sources for the timer engine."""

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Supplies the current wall-clock time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Local wall clock with timezone information.

    A monotonic clock restarts with the process, so reconciliation across
    restarts has to use wall-clock time.
    """

    def now(self) -> datetime:
        return datetime.now().astimezone()
