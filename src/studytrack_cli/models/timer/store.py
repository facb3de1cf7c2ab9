"""Snapshot persistence, one slot per timer mode."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

from .errors import PersistenceError
from .state import TimerMode, TimerSnapshot

logger = logging.getLogger(__name__)


class PersistenceStore(Protocol):
    """Storage slot for a single timer mode."""

    mode: TimerMode

    def save(self, snapshot: TimerSnapshot) -> None: ...

    def load(self) -> TimerSnapshot | None: ...

    def clear(self) -> None: ...


class FileSnapshotStore:
    """Keeps the snapshot in a JSON file that survives restarts."""

    def __init__(self, mode: TimerMode, state_dir: Path | None = None):
        """Initialize the store for one mode."""
        if state_dir is None:
            from platformdirs import user_data_dir

            state_dir = Path(user_data_dir("studytrack_cli")) / "state"

        self.mode = mode
        self.state_dir = state_dir
        self.state_file = self.state_dir / f"{mode}_timer.json"

    def save(self, snapshot: TimerSnapshot) -> None:
        """Overwrite the slot with the given snapshot."""
        if snapshot.mode != self.mode:
            raise ValueError(
                f"Cannot store a {snapshot.mode} snapshot in the {self.mode} slot"
            )

        tmp_file = self.state_file.with_suffix(".tmp")
        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            # Set secure permissions
            tmp_file.chmod(0o600)
            os.replace(tmp_file, self.state_file)
        except OSError as e:
            raise PersistenceError(f"Failed to save {self.mode} timer state: {e}") from e

    def load(self) -> TimerSnapshot | None:
        """Load the snapshot. Returns None if missing; corrupt files are removed."""
        if not self.state_file.exists():
            return None

        try:
            with open(self.state_file, encoding="utf-8") as f:
                data = json.load(f)
            return TimerSnapshot.from_dict(data)
        except (json.JSONDecodeError, TypeError, KeyError, ValueError) as e:
            logger.warning(
                "Discarding unreadable %s timer state %s: %s",
                self.mode,
                self.state_file,
                e,
            )
            self.clear()
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to load {self.mode} timer state: {e}") from e

    def clear(self) -> None:
        """Remove the slot."""
        try:
            self.state_file.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"Failed to clear {self.mode} timer state: {e}") from e


class InMemorySnapshotStore:
    """Process-local store, used by tests and for throwaway timers."""

    def __init__(self, mode: TimerMode):
        self.mode = mode
        self._data: dict | None = None

    def save(self, snapshot: TimerSnapshot) -> None:
        if snapshot.mode != self.mode:
            raise ValueError(
                f"Cannot store a {snapshot.mode} snapshot in the {self.mode} slot"
            )
        self._data = snapshot.to_dict()

    def load(self) -> TimerSnapshot | None:
        if self._data is None:
            return None
        try:
            return TimerSnapshot.from_dict(dict(self._data))
        except (TypeError, KeyError, ValueError) as e:
            logger.warning("Discarding unreadable %s timer state: %s", self.mode, e)
            self.clear()
            return None

    def clear(self) -> None:
        self._data = None
