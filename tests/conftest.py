"""Shared test fixtures and configuration.

Provides a hand-driven clock, a mocked session gateway and config isolation
so no test touches real platform directories or the network.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from studytrack_cli.models.timer.engine import TimerEngine
from studytrack_cli.models.timer.store import InMemorySnapshotStore

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, start: datetime = T0):
        self.origin = start
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current

    def set(self, when: datetime) -> None:
        self.current = when


# ---------------------------------------------------------------------------
# Timer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def gateway():
    """Session gateway double: start returns session 42, end/cancel succeed."""
    gw = MagicMock()
    gw.start = AsyncMock(return_value=42)
    gw.end = AsyncMock(return_value=None)
    gw.cancel = AsyncMock(return_value=None)
    return gw


@pytest.fixture()
def countdown_store():
    return InMemorySnapshotStore("countdown")


@pytest.fixture()
def count_up_store():
    return InMemorySnapshotStore("count_up")


@pytest.fixture()
def countdown(gateway, countdown_store, clock):
    return TimerEngine("countdown", gateway, countdown_store, clock)


@pytest.fixture()
def count_up(gateway, count_up_store, clock):
    return TimerEngine("count_up", gateway, count_up_store, clock)


# ---------------------------------------------------------------------------
# Config isolation helpers
# ---------------------------------------------------------------------------


@pytest.fixture()
def tmp_config(tmp_path):
    """Provide a real ConfigService backed by a temporary directory.

    Patches platform dirs so config/data files land in *tmp_path* only.
    Also clears the lru_cache so each test gets a fresh service instance.
    """
    from studytrack_cli.services.config_service import get_config_service

    tmpdir = str(tmp_path)
    get_config_service.cache_clear()
    with patch("studytrack_cli.services.config_service.user_config_dir", return_value=tmpdir):
        with patch("studytrack_cli.services.config_service.user_data_dir", return_value=tmpdir):
            from studytrack_cli.services.config_service import ConfigService

            svc = ConfigService()
            yield svc
    get_config_service.cache_clear()


@pytest.fixture(autouse=True)
def quiet_command_logger():
    """Keep the command decorator from writing to the real user log dir."""
    with patch(
        "studytrack_cli.commands.decorators.get_logger",
        return_value=logging.getLogger("studytrack_cli.tests"),
    ):
        yield
