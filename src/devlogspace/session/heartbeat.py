"""Heartbeat monitor: periodic pause detection and lease refresh.

One monitor per process. Every interval it compares the activity marker with
the wall clock, records either a pause or active time into the session
metadata, refreshes the workspace lease and persists the metadata.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING

from devlogspace.clock import Clock, round_minutes, utc_now
from devlogspace.logging import get_logger

if TYPE_CHECKING:
    from devlogspace.coordination.lock_manager import WorkspaceLockManager
    from devlogspace.session.activity import ActivityMarker
    from devlogspace.session.document import MetadataStore
    from devlogspace.workspace.paths import WorkspacePaths

log = get_logger("heartbeat")

DEFAULT_INTERVAL = timedelta(minutes=5)
DEFAULT_INACTIVITY_THRESHOLD = timedelta(minutes=5)

# Pauses start just after the last recorded activity.
PAUSE_OFFSET = timedelta(seconds=1)


class HeartbeatMonitor:
    """Fixed-interval timer that keeps session timing and the lease fresh.

    Starting the monitor cancels any timer it already runs. Tick failures are
    logged and the schedule continues.
    """

    def __init__(
        self,
        *,
        paths: WorkspacePaths,
        lock_manager: WorkspaceLockManager,
        store: MetadataStore,
        marker: ActivityMarker,
        interval: timedelta = DEFAULT_INTERVAL,
        inactivity_threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
        clock: Clock = utc_now,
    ) -> None:
        self._paths = paths
        self._lock_manager = lock_manager
        self._store = store
        self._marker = marker
        self._interval = interval
        self._inactivity_threshold = inactivity_threshold
        self._clock = clock
        self._agent_id: str | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def agent_id(self) -> str | None:
        return self._agent_id

    def start(self, agent_id: str) -> None:
        """Start ticking for agent_id. Must be called from within an event loop."""
        self.stop()
        self._agent_id = agent_id
        self._task = asyncio.create_task(self._run())
        log.info("Heartbeat started (%.0fs intervals)", self._interval.total_seconds())

    def stop(self) -> None:
        """Cancel the timer. Safe to call at any time."""
        task, self._task = self._task, None
        if task is None:
            return
        if task is not asyncio.current_task():
            task.cancel()
        log.info("Heartbeat stopped")

    async def _run(self) -> None:
        # Ticks start on a fixed schedule of the loop clock.
        loop = asyncio.get_running_loop()
        period = self._interval.total_seconds()
        deadline = loop.time() + period
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            if not await self.tick():
                self._task = None
                log.info("Workspace document gone, heartbeat stopped")
                return
            deadline += period
            # Slots a slow tick overran are skipped, not replayed.
            while period and deadline <= loop.time():
                deadline += period

    async def tick(self) -> bool:
        """Run one heartbeat.

        Returns:
            False when the workspace document no longer exists and the
            monitor should stop, True otherwise (including after errors).
        """
        try:
            if not await asyncio.to_thread(self._paths.current.exists):
                return False

            metadata = await self._store.extract(self._paths.current)
            if metadata is None:
                log.debug("No session metadata, skipping heartbeat")
                return True

            now = self._clock()
            last_activity = self._marker.last
            elapsed = now - last_activity

            if elapsed > self._inactivity_threshold:
                pause_start = last_activity + PAUSE_OFFSET
                pause_minutes = round_minutes(now - pause_start)
                metadata.add_pause(pause_start, now, pause_minutes)
                self._marker.touch(now)
                log.debug("Recorded %d minute pause", pause_minutes)
            else:
                metadata.timing.active_minutes += round_minutes(elapsed)

            metadata.session.last_heartbeat = now

            if self._agent_id is not None:
                await self._lock_manager.update_lock_heartbeat(self._agent_id)

            await self._store.update(self._paths.current, metadata)
        except Exception as e:
            log.error("Heartbeat error: %s", e)
        return True
