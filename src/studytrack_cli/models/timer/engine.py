"""Resumable study timer state machine.

One ``TimerEngine`` exists per timer mode. It owns the in-memory state, writes
a snapshot after every transition, and talks to the backend through a
``SessionGateway``. Both countdown and count-up timers run through the same
code; a ``TimerPolicy`` supplies the display value and completion rule.

Transitions::

    idle --start--> running --pause--> paused --resume--> running
    running|paused --stop(save)/complete--> idle
    running|paused --stop(discard)--> idle

Local state always resets before a closing ``end`` call is awaited, so a
failing backend can never leave a timer that cannot be stopped.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from .clock import Clock, SystemClock
from .errors import NetworkError, PersistenceError, StateError, ValidationError
from .gateway import SessionGateway
from .policy import CountdownPolicy, CountUpPolicy, TimerPolicy, policy_for
from .state import (
    SESSION_TYPES,
    StartConfig,
    StopResult,
    TimerEvent,
    TimerEventKind,
    TimerMode,
    TimerReading,
    TimerSnapshot,
    TimerStatus,
)
from .store import PersistenceStore

logger = logging.getLogger(__name__)

DEFAULT_COUNTDOWN_SECONDS = 25 * 60


class TimerEngine:
    """Single source of truth for one timer mode."""

    def __init__(
        self,
        mode: TimerMode,
        gateway: SessionGateway,
        store: PersistenceStore,
        clock: Clock | None = None,
        *,
        default_target_seconds: int = DEFAULT_COUNTDOWN_SECONDS,
        credit_overrun: bool = True,
        delete_discarded: bool = False,
    ):
        if store.mode != mode:
            raise ValueError(f"Store slot {store.mode!r} does not match mode {mode!r}")

        self.mode = mode
        self.gateway = gateway
        self.store = store
        self.clock = clock or SystemClock()
        self.default_target_seconds = default_target_seconds
        self.credit_overrun = credit_overrun
        self.delete_discarded = delete_discarded
        self.events: asyncio.Queue[TimerEvent] = asyncio.Queue()

        self._status: TimerStatus = "idle"
        self._policy: TimerPolicy | None = None
        self._remote_session_id: int | None = None
        self._start_timestamp: datetime | None = None
        self._accumulated_seconds = 0
        self._high_water = 0
        self._topic_id: int | None = None
        self._notes: str | None = None

        self._start_in_flight = False
        self._generation = 0
        self._closed = False
        self._pending: set[asyncio.Task] = set()
        self._persist_failed = False
        self._deferred: list[tuple[int, int]] = []

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def status(self) -> TimerStatus:
        return self._status

    @property
    def remote_session_id(self) -> int | None:
        return self._remote_session_id

    @property
    def start_timestamp(self) -> datetime | None:
        return self._start_timestamp

    @property
    def accumulated_seconds(self) -> int:
        return self._accumulated_seconds

    @property
    def target_duration_seconds(self) -> int | None:
        if self._policy is None:
            return None
        return self._policy.target_duration_seconds

    @property
    def is_active(self) -> bool:
        return self._status in ("running", "paused")

    @property
    def start_in_flight(self) -> bool:
        return self._start_in_flight

    def snapshot(self) -> TimerSnapshot | None:
        """Current state as a snapshot, or None while idle."""
        if not self.is_active:
            return None
        return TimerSnapshot(
            mode=self.mode,
            status=self._status,
            remote_session_id=self._remote_session_id,
            start_timestamp=(
                self._start_timestamp.isoformat() if self._start_timestamp else None
            ),
            accumulated_seconds=self._accumulated_seconds,
            target_duration_seconds=self.target_duration_seconds,
            topic_id=self._topic_id,
            notes=self._notes,
        )

    def reading(self, now: datetime | None = None) -> TimerReading:
        """Elapsed/remaining time for display, without side effects on storage."""
        if not self.is_active:
            return self._make_reading("idle", 0, self._idle_policy(), None)

        elapsed = self._elapsed(self._now(now))
        return self._make_reading(
            self._status, elapsed, self._policy, self._remote_session_id
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, config: StartConfig | None = None) -> TimerReading:
        """Open a remote session and start counting."""
        config = config or StartConfig()
        if self._closed:
            raise StateError("Timer engine is closed")
        if self._start_in_flight:
            raise StateError(f"A {self.mode} session is already being started")
        if self._status != "idle":
            raise StateError(f"Cannot start: {self.mode} timer is {self._status}")

        if self.mode == "countdown":
            target = config.target_duration_seconds
            if target is None:
                target = self.default_target_seconds
            policy = policy_for(self.mode, target)
        else:
            policy = policy_for(self.mode)

        generation = self._generation
        self._start_in_flight = True
        try:
            session_id = await self.gateway.start(
                SESSION_TYPES[self.mode], config.topic_id, config.notes
            )
        except NetworkError as e:
            logger.error("Failed to start %s session: %s", self.mode, e)
            raise
        finally:
            self._start_in_flight = False

        if generation != self._generation or self._status != "idle":
            logger.warning(
                "Discarding start response for session %s: %s timer moved on",
                session_id,
                self.mode,
            )
            await self._cancel_remote(session_id)
            raise StateError("Timer was reset while the session was starting")

        now = self.clock.now()
        self._policy = policy
        self._remote_session_id = session_id
        self._start_timestamp = now
        self._accumulated_seconds = 0
        self._high_water = 0
        self._topic_id = config.topic_id
        self._notes = config.notes
        self._status = "running"
        self._persist()

        logger.info(
            "Started %s session %s (target=%s)",
            self.mode,
            session_id,
            policy.target_duration_seconds,
        )
        return self.reading(now)

    def pause(self, now: datetime | None = None) -> TimerReading:
        """Bank the running segment. Pausing a paused timer does nothing."""
        if self._status == "paused":
            return self.reading(now)
        if self._status != "running":
            raise StateError(f"Cannot pause: {self.mode} timer is {self._status}")

        now = self._now(now)
        self._accumulated_seconds = self._elapsed(now)
        self._start_timestamp = None
        self._status = "paused"
        self._persist()

        logger.info(
            "Paused %s session %s at %ss",
            self.mode,
            self._remote_session_id,
            self._accumulated_seconds,
        )
        return self.reading(now)

    def resume(self, now: datetime | None = None) -> TimerReading:
        """Start a new running segment. Resuming a running timer does nothing."""
        if self._status == "running":
            return self.reading(now)
        if self._status != "paused":
            raise StateError(f"Cannot resume: {self.mode} timer is {self._status}")

        now = self._now(now)
        self._start_timestamp = now
        self._status = "running"
        self._persist()

        logger.info("Resumed %s session %s", self.mode, self._remote_session_id)
        return self.reading(now)

    def tick(self, now: datetime | None = None) -> TimerReading:
        """Recompute the live reading; completes a countdown that reached zero.

        The snapshot is re-saved on every running tick so an ungraceful exit
        loses at most one tick. Completion resets local state right away and
        sends the closing ``end`` call in the background.
        """
        now = self._now(now)
        if self._status != "running":
            return self.reading(now)

        elapsed = self._elapsed(now)
        policy = self._policy
        if policy.is_complete(elapsed):
            session_id, duration = self._finish_locally(now)
            logger.info("%s session %s reached its target", self.mode, session_id)
            self._schedule_end(session_id, duration)
            return self._make_reading("completed", elapsed, policy, session_id)

        self._persist()
        return self._make_reading("running", elapsed, policy, self._remote_session_id)

    async def stop(self, discard: bool = False, now: datetime | None = None) -> StopResult:
        """End the session, saving it unless ``discard`` is set.

        Raises NetworkError after the local reset if the backend did not
        accept the session.
        """
        if not self.is_active:
            raise StateError(f"Cannot stop: {self.mode} timer is {self._status}")

        now = self._now(now)
        if discard:
            session_id = self._remote_session_id
            elapsed = self._elapsed(now)
            self._reset()
            logger.info(
                "Discarded %s session %s after %ss", self.mode, session_id, elapsed
            )
            if self.delete_discarded:
                await self._cancel_remote(session_id)
            return StopResult(session_id, elapsed, saved=False)

        session_id, duration = self._finish_locally(now)
        result = await self._report_end(session_id, duration, publish=False)
        if result.error is not None:
            raise result.error
        return result

    async def complete(self, now: datetime | None = None) -> StopResult:
        """Close a countdown as finished. Backend failures become an event."""
        if self.mode != "countdown":
            raise StateError("Count-up timers only end with an explicit stop")
        if not self.is_active:
            raise StateError(f"Cannot complete: {self.mode} timer is {self._status}")

        session_id, duration = self._finish_locally(self._now(now))
        return await self._report_end(session_id, duration, publish=True)

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    async def restore(self, now: datetime | None = None) -> TimerReading:
        """Load this mode's snapshot, if any, and reconcile it with the clock."""
        try:
            snapshot = self.store.load()
        except PersistenceError as e:
            logger.error("Could not read %s timer state: %s", self.mode, e)
            return self.reading(now)

        if snapshot is None:
            return self.reading(now)

        try:
            return await self.restore_from_snapshot(snapshot, now)
        except (ValueError, ValidationError) as e:
            logger.warning("Dropping invalid %s timer state: %s", self.mode, e)
            self._persist()
            return self.reading(now)

    async def restore_from_snapshot(
        self, snapshot: TimerSnapshot, now: datetime | None = None
    ) -> TimerReading:
        """Rebuild state as if ``tick`` had run continuously since the snapshot.

        A running countdown whose target passed while nobody was watching is
        completed immediately, reporting the real elapsed wall-clock time
        (or the target, when ``credit_overrun`` is off).
        """
        if self.is_active:
            raise StateError(f"Cannot restore: {self.mode} timer is {self._status}")
        if snapshot.mode != self.mode:
            raise ValueError(
                f"Snapshot is for {snapshot.mode}, engine runs {self.mode}"
            )
        snapshot.validate()
        policy = policy_for(self.mode, snapshot.target_duration_seconds)

        self._apply_snapshot(snapshot, policy)
        now = self._now(now)
        elapsed = self._elapsed(now)
        if self._status == "running" and policy.is_complete(elapsed):
            logger.info(
                "%s session %s finished while offline (%ss elapsed)",
                self.mode,
                snapshot.remote_session_id,
                elapsed,
            )
            session_id, duration = self._finish_locally(now)
            if self._persist_failed:
                # slot still holds the session; a later restore reports its end
                logger.error(
                    "Session %s could not be cleared from storage; end not sent",
                    session_id,
                )
                return self.reading(now)
            await self._report_end(session_id, duration, publish=True)
            return self._make_reading("completed", elapsed, policy, session_id)

        logger.info(
            "Restored %s session %s as %s (%ss elapsed)",
            self.mode,
            snapshot.remote_session_id,
            self._status,
            elapsed,
        )
        self._publish("restored", snapshot.remote_session_id, elapsed)
        return self.reading(now)

    def reload(self) -> bool:
        """Adopt changes another process made to this mode's slot.

        A session stopped elsewhere is dropped from memory without calling
        the backend; one paused or resumed elsewhere is taken over as is.
        Returns True when local state changed. While the last write failed
        the slot is stale, so the in-memory session is kept.
        """
        if self._persist_failed:
            return False

        try:
            stored = self.store.load()
        except PersistenceError as e:
            logger.error("Could not read %s timer state: %s", self.mode, e)
            return False

        if stored == self.snapshot():
            return False

        if stored is not None:
            try:
                policy = policy_for(self.mode, stored.target_duration_seconds)
            except ValidationError as e:
                logger.warning("Ignoring invalid %s timer state: %s", self.mode, e)
                return False

        logger.info(
            "%s session %s changed elsewhere: now %s",
            self.mode,
            self._remote_session_id,
            stored.status if stored else "idle",
        )
        self._clear_memory()
        if stored is not None:
            self._apply_snapshot(stored, policy)
        return True

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    async def drain(self) -> None:
        """Wait for background ``end`` calls scheduled by ``tick``."""
        while self._deferred:
            session_id, duration = self._deferred.pop(0)
            await self._report_end(session_id, duration, publish=True)
        if self._pending:
            await asyncio.gather(*list(self._pending))

    async def close(self) -> None:
        """Stop accepting starts, drop in-flight start responses, flush work."""
        self._closed = True
        self._generation += 1
        await self.drain()

    def pending_events(self) -> list[TimerEvent]:
        """Take every event currently queued on the channel."""
        events = []
        while not self.events.empty():
            events.append(self.events.get_nowait())
        return events

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else self.clock.now()

    def _segment_seconds(self, now: datetime) -> int:
        if self._status != "running" or self._start_timestamp is None:
            return 0
        delta = int((now - self._start_timestamp).total_seconds())
        if delta < 0:
            logger.warning(
                "Clock is %ss behind the %s segment start; clamping", -delta, self.mode
            )
            return 0
        return delta

    def _elapsed(self, now: datetime) -> int:
        # never report less than we already showed, even if the clock jumps back
        total = self._accumulated_seconds + self._segment_seconds(now)
        self._high_water = max(self._high_water, total)
        return self._high_water

    def _reported_duration(self, elapsed: int) -> int:
        target = self.target_duration_seconds
        if target is not None and not self.credit_overrun:
            elapsed = min(elapsed, target)
        return max(1, elapsed)

    def _finish_locally(self, now: datetime) -> tuple[int, int]:
        session_id = self._remote_session_id
        duration = self._reported_duration(self._elapsed(now))
        self._reset()
        return session_id, duration

    def _idle_policy(self) -> TimerPolicy:
        if self.mode == "countdown":
            return CountdownPolicy(self.default_target_seconds)
        return CountUpPolicy()

    def _make_reading(
        self,
        status: TimerStatus,
        elapsed: int,
        policy: TimerPolicy,
        session_id: int | None,
    ) -> TimerReading:
        return TimerReading(
            mode=self.mode,
            status=status,
            elapsed_seconds=elapsed,
            remaining_seconds=policy.remaining(elapsed),
            remote_session_id=session_id,
            display_seconds=policy.display(elapsed),
        )

    def _apply_snapshot(self, snapshot: TimerSnapshot, policy: TimerPolicy) -> None:
        self._policy = policy
        self._status = snapshot.status
        self._remote_session_id = snapshot.remote_session_id
        self._start_timestamp = snapshot.start_datetime
        self._accumulated_seconds = snapshot.accumulated_seconds
        self._high_water = snapshot.accumulated_seconds
        self._topic_id = snapshot.topic_id
        self._notes = snapshot.notes

    def _clear_memory(self) -> None:
        self._status = "idle"
        self._policy = None
        self._remote_session_id = None
        self._start_timestamp = None
        self._accumulated_seconds = 0
        self._high_water = 0
        self._topic_id = None
        self._notes = None
        self._generation += 1

    def _reset(self) -> None:
        self._clear_memory()
        self._persist()

    def _persist(self) -> None:
        snapshot = self.snapshot()
        try:
            if snapshot is None:
                self.store.clear()
            else:
                self.store.save(snapshot)
        except PersistenceError as e:
            if self._persist_failed:
                logger.debug("Timer state still not written: %s", e)
                return
            self._persist_failed = True
            logger.error("Timer state kept in memory only: %s", e)
            self._publish("persistence_failed", self._remote_session_id, error=e)
            return

        if self._persist_failed:
            logger.info("Timer state written again for %s", self.mode)
            self._persist_failed = False

    def _schedule_end(self, session_id: int, duration: int) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deferred.append((session_id, duration))
            return
        task = loop.create_task(self._report_end(session_id, duration, publish=True))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _report_end(
        self, session_id: int, duration: int, publish: bool
    ) -> StopResult:
        try:
            await self.gateway.end(session_id, duration)
        except NetworkError as e:
            logger.error(
                "Session %s not saved (%ss lost server-side): %s", session_id, duration, e
            )
            if publish:
                self._publish("end_failed", session_id, duration, error=e)
            return StopResult(session_id, duration, saved=False, error=e)

        if self._remote_session_id not in (None, session_id):
            logger.debug(
                "End of session %s acknowledged after %s moved to session %s",
                session_id,
                self.mode,
                self._remote_session_id,
            )
        logger.info("Saved %s session %s (%ss)", self.mode, session_id, duration)
        if publish:
            self._publish("completed", session_id, duration)
        return StopResult(session_id, duration, saved=True)

    async def _cancel_remote(self, session_id: int) -> None:
        try:
            await self.gateway.cancel(session_id)
        except NetworkError as e:
            logger.warning("Could not delete discarded session %s: %s", session_id, e)

    def _publish(
        self,
        kind: TimerEventKind,
        session_id: int | None,
        duration: int | None = None,
        error: Exception | None = None,
    ) -> None:
        message = {
            "completed": "Session saved",
            "end_failed": "Session could not be saved",
            "restored": "Timer restored",
            "persistence_failed": "Timer state could not be written",
        }[kind]
        self.events.put_nowait(
            TimerEvent(kind, self.mode, session_id, duration, error, message)
        )
