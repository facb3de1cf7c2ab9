"""Wires timer engines to storage, the backend and the tick loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from studytrack_cli.models.config_models import TimerConfig
from studytrack_cli.models.timer.clock import Clock
from studytrack_cli.models.timer.engine import TimerEngine
from studytrack_cli.models.timer.gateway import SessionGateway
from studytrack_cli.models.timer.state import TimerMode, TimerReading
from studytrack_cli.models.timer.store import FileSnapshotStore, PersistenceStore
from studytrack_cli.services.api.client import APIClient
from studytrack_cli.services.config_service import ConfigService, get_config_service
from studytrack_cli.services.session_gateway import RestSessionGateway

logger = logging.getLogger(__name__)


class TimerService:
    """Keeps exactly one engine per timer mode."""

    def __init__(
        self,
        gateway: SessionGateway,
        config: TimerConfig | None = None,
        state_dir: Path | None = None,
        clock: Clock | None = None,
        store_factory: Callable[[TimerMode], PersistenceStore] | None = None,
    ):
        self.gateway = gateway
        self.config = config or TimerConfig()
        self.clock = clock
        if store_factory is None:

            def store_factory(mode: TimerMode) -> PersistenceStore:
                return FileSnapshotStore(mode, state_dir)

        self._store_factory = store_factory
        self._engines: dict[TimerMode, TimerEngine] = {}

    async def open(self, mode: TimerMode) -> TimerEngine:
        """Return the engine for a mode, restoring its snapshot the first time."""
        engine = self._engines.get(mode)
        if engine is not None:
            return engine

        engine = TimerEngine(
            mode,
            self.gateway,
            self._store_factory(mode),
            self.clock,
            default_target_seconds=self.config.default_countdown_minutes * 60,
            credit_overrun=self.config.credit_overrun,
            delete_discarded=self.config.delete_discarded_sessions,
        )
        self._engines[mode] = engine
        await engine.restore()
        return engine

    async def run(
        self,
        mode: TimerMode,
        on_tick: Callable[[TimerReading], None],
        interval: float | None = None,
        stop: asyncio.Event | None = None,
    ) -> TimerReading:
        """Tick a mode's engine until it goes idle or ``stop`` is set.

        ``on_tick`` receives every reading, including the final one.
        """
        if interval is None:
            interval = self.config.tick_interval

        engine = await self.open(mode)
        while True:
            # another process may have paused or stopped this session
            engine.reload()
            if engine.status == "running":
                reading = engine.tick()
            else:
                reading = engine.reading()
            on_tick(reading)

            if reading.status in ("idle", "completed"):
                break
            if stop is not None and stop.is_set():
                break
            await asyncio.sleep(interval)

        await engine.drain()
        return reading

    async def drain(self) -> None:
        """Wait for background ``end`` calls of every engine."""
        for engine in self._engines.values():
            await engine.drain()

    async def close(self) -> None:
        """Flush background work of every engine."""
        for engine in self._engines.values():
            await engine.close()


@asynccontextmanager
async def open_timer_service(
    config_service: ConfigService | None = None,
) -> AsyncIterator[TimerService]:
    """TimerService backed by the REST gateway and snapshot files."""
    config_service = config_service or get_config_service()
    async with APIClient() as client:
        gateway = RestSessionGateway(client, config_service.config.api)
        service = TimerService(
            gateway,
            config_service.config.timer,
            state_dir=config_service.state_dir,
        )
        try:
            yield service
        finally:
            await service.close()
