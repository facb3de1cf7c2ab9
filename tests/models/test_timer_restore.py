"""Tests for restoring and reloading timer state from the snapshot store."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from studytrack_cli.models.timer.engine import TimerEngine
from studytrack_cli.models.timer.errors import NetworkError, PersistenceError, StateError
from studytrack_cli.models.timer.state import StartConfig, TimerSnapshot


def _engine(gateway, store, clock, **kwargs):
    return TimerEngine(store.mode, gateway, store, clock, **kwargs)


def _running_countdown(clock, target=1500, accumulated=0):
    return TimerSnapshot(
        mode="countdown",
        status="running",
        remote_session_id=42,
        start_timestamp=clock.now().isoformat(),
        accumulated_seconds=accumulated,
        target_duration_seconds=target,
    )


class TestRestore:
    @pytest.mark.asyncio
    async def test_empty_store_is_idle(self, countdown, gateway):
        reading = await countdown.restore()

        assert reading.status == "idle"
        assert countdown.status == "idle"
        gateway.end.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_running_snapshot_round_trips(self, gateway, countdown_store, clock):
        first = _engine(gateway, countdown_store, clock)
        await first.start(StartConfig(topic_id=3, notes="calc", target_duration_seconds=1500))
        saved = first.snapshot()

        second = _engine(gateway, countdown_store, clock)
        await second.restore()

        assert second.snapshot() == saved
        assert second.status == "running"

    @pytest.mark.asyncio
    async def test_paused_snapshot_round_trips(self, gateway, count_up_store, clock):
        first = _engine(gateway, count_up_store, clock)
        await first.start()
        clock.advance(90)
        first.pause()

        clock.advance(3600)
        second = _engine(gateway, count_up_store, clock)
        reading = await second.restore()

        assert second.snapshot() == first.snapshot()
        assert reading.status == "paused"
        assert reading.elapsed_seconds == 90

    @pytest.mark.asyncio
    async def test_running_timer_catches_up_with_offline_time(
        self, gateway, count_up_store, clock
    ):
        first = _engine(gateway, count_up_store, clock)
        await first.start()
        clock.advance(100)
        first.tick()

        clock.advance(500)
        second = _engine(gateway, count_up_store, clock)
        reading = await second.restore()

        assert reading.status == "running"
        assert reading.elapsed_seconds == 600
        events = second.pending_events()
        assert [e.kind for e in events] == ["restored"]
        assert events[0].remote_session_id == 42

    @pytest.mark.asyncio
    async def test_offline_countdown_completion_credits_real_time(
        self, gateway, countdown_store, clock
    ):
        first = _engine(gateway, countdown_store, clock)
        await first.start(StartConfig(target_duration_seconds=600))

        clock.advance(650)
        second = _engine(gateway, countdown_store, clock)
        reading = await second.restore()

        assert reading.status == "completed"
        assert reading.remaining_seconds == 0
        gateway.end.assert_awaited_once_with(42, 650)
        assert second.status == "idle"
        assert countdown_store.load() is None
        assert [e.kind for e in second.pending_events()] == ["completed"]

    @pytest.mark.asyncio
    async def test_offline_countdown_completion_can_clamp_to_target(
        self, gateway, countdown_store, clock
    ):
        first = _engine(gateway, countdown_store, clock)
        await first.start(StartConfig(target_duration_seconds=600))

        clock.advance(650)
        second = _engine(gateway, countdown_store, clock, credit_overrun=False)
        await second.restore()

        gateway.end.assert_awaited_once_with(42, 600)

    @pytest.mark.asyncio
    async def test_offline_completion_failure_still_resets(
        self, gateway, countdown_store, clock
    ):
        countdown_store.save(_running_countdown(clock, target=600))
        gateway.end.side_effect = NetworkError("offline")
        clock.advance(700)

        engine = _engine(gateway, countdown_store, clock)
        reading = await engine.restore()

        assert reading.status == "completed"
        assert engine.status == "idle"
        assert countdown_store.load() is None
        events = engine.pending_events()
        assert [e.kind for e in events] == ["end_failed"]
        assert events[0].duration_seconds == 700

    @pytest.mark.asyncio
    async def test_paused_countdown_past_target_stays_paused(
        self, gateway, countdown_store, clock
    ):
        snapshot = TimerSnapshot(
            mode="countdown",
            status="paused",
            remote_session_id=42,
            start_timestamp=None,
            accumulated_seconds=300,
            target_duration_seconds=600,
        )
        countdown_store.save(snapshot)
        clock.advance(86400)

        engine = _engine(gateway, countdown_store, clock)
        reading = await engine.restore()

        assert reading.status == "paused"
        assert reading.remaining_seconds == 300
        gateway.end.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_out_of_range_target_is_dropped(self, gateway, countdown_store, clock):
        countdown_store.save(_running_countdown(clock, target=121 * 60))

        engine = _engine(gateway, countdown_store, clock)
        reading = await engine.restore()

        assert reading.status == "idle"
        assert countdown_store.load() is None
        gateway.end.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_store_leaves_engine_idle(self, gateway, clock):
        store = MagicMock()
        store.mode = "countdown"
        store.load.side_effect = PersistenceError("permission denied")

        engine = _engine(gateway, store, clock)
        reading = await engine.restore()

        assert reading.status == "idle"

    @pytest.mark.asyncio
    async def test_restore_from_snapshot_rejects_other_mode(self, count_up, clock):
        with pytest.raises(ValueError):
            await count_up.restore_from_snapshot(_running_countdown(clock))

    @pytest.mark.asyncio
    async def test_restore_over_active_session_fails(self, countdown, clock):
        await countdown.start(StartConfig(target_duration_seconds=600))
        with pytest.raises(StateError):
            await countdown.restore_from_snapshot(_running_countdown(clock))

    @pytest.mark.asyncio
    async def test_future_start_timestamp_counts_as_zero(
        self, gateway, countdown_store, clock
    ):
        snapshot = _running_countdown(clock, accumulated=30)
        snapshot.start_timestamp = (clock.now() + timedelta(minutes=5)).isoformat()
        countdown_store.save(snapshot)

        engine = _engine(gateway, countdown_store, clock)
        reading = await engine.restore()

        assert reading.status == "running"
        assert reading.elapsed_seconds == 30

    @pytest.mark.asyncio
    async def test_offline_completion_waits_until_slot_can_be_cleared(
        self, gateway, countdown_store, clock
    ):
        first = _engine(gateway, countdown_store, clock)
        await first.start(StartConfig(target_duration_seconds=600))
        clock.advance(650)

        store = MagicMock(wraps=countdown_store)
        store.mode = "countdown"
        store.clear.side_effect = PersistenceError("read-only file system")
        for _ in range(3):
            reading = await _engine(gateway, store, clock).restore()
            assert reading.status == "idle"

        gateway.end.assert_not_awaited()
        assert countdown_store.load() is not None

        store.clear.side_effect = None
        reading = await _engine(gateway, store, clock).restore()

        assert reading.status == "completed"
        gateway.end.assert_awaited_once_with(42, 650)
        assert countdown_store.load() is None


class TestReload:
    @pytest.mark.asyncio
    async def test_unchanged_store_is_a_no_op(self, countdown):
        await countdown.start(StartConfig(target_duration_seconds=600))
        assert countdown.reload() is False
        assert countdown.status == "running"

    @pytest.mark.asyncio
    async def test_adopts_stop_from_another_process(self, gateway, countdown_store, clock):
        watcher = _engine(gateway, countdown_store, clock)
        other = _engine(gateway, countdown_store, clock)
        await other.start(StartConfig(target_duration_seconds=600))
        await watcher.restore()

        clock.advance(60)
        await other.stop()

        assert watcher.reload() is True
        assert watcher.status == "idle"
        assert watcher.tick().status == "idle"
        gateway.end.assert_awaited_once_with(42, 60)
        assert countdown_store.load() is None

    @pytest.mark.asyncio
    async def test_adopts_pause_from_another_process(self, gateway, count_up_store, clock):
        watcher = _engine(gateway, count_up_store, clock)
        other = _engine(gateway, count_up_store, clock)
        await other.start()
        await watcher.restore()

        clock.advance(45)
        other.pause()

        assert watcher.reload() is True
        assert watcher.status == "paused"
        assert watcher.accumulated_seconds == 45

    @pytest.mark.asyncio
    async def test_adopts_session_started_elsewhere(self, gateway, count_up_store, clock):
        watcher = _engine(gateway, count_up_store, clock)
        other = _engine(gateway, count_up_store, clock)
        await watcher.restore()
        await other.start()

        assert watcher.reload() is True
        assert watcher.status == "running"
        assert watcher.remote_session_id == 42
