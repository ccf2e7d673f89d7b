"""Lease-based lock manager for the shared devlog workspace.

Coordinates any number of independent agent processes through a single lease
file. A holder keeps the workspace by refreshing the lease (heartbeat); a
holder that crashes or stops heartbeating loses it once the lease lapses or
the heartbeat goes stale, and the next acquirer reclaims it.

A missing or malformed lease file means "unlocked": a corrupt file must never
deadlock the workspace.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from filelock import FileLock, Timeout
from pydantic import ValidationError

from devlogspace.clock import Clock, round_minutes, utc_now
from devlogspace.coordination.schema import LockResult, WorkspaceLock
from devlogspace.logging import get_logger
from devlogspace.workspace.files import atomic_write_text, read_text

if TYPE_CHECKING:
    from devlogspace.config.schema import LockConfig
    from devlogspace.workspace.paths import WorkspacePaths

log = get_logger("lock")

DEFAULT_LEASE = timedelta(minutes=30)
DEFAULT_STALE_THRESHOLD = timedelta(minutes=60)
DEFAULT_GUARD_TIMEOUT = 5.0


class WorkspaceLockManager:
    """Acquire, refresh and release the workspace lease.

    Responsibilities:
    - Read the lease file, treating absence or corruption as "no lock"
    - Decide expiry with two independent thresholds (lease, staleness)
    - Write new or refreshed leases with atomic replace
    - Refuse refresh/release from agents that do not hold the lease

    Ownership is plain ``agent_id`` equality. Each read-check-write runs under
    a short-lived ``FileLock`` guard so two processes on the same host cannot
    interleave between the check and the write.
    """

    def __init__(
        self,
        lock_path: Path,
        *,
        lease: timedelta = DEFAULT_LEASE,
        stale_threshold: timedelta = DEFAULT_STALE_THRESHOLD,
        clock: Clock = utc_now,
        guard_timeout: float = DEFAULT_GUARD_TIMEOUT,
    ) -> None:
        """Initialize the lock manager.

        Args:
            lock_path: Path of the lease file (``<root>/.mcp/workspace.lock``).
            lease: Soft lease duration granted by acquire and heartbeat.
            stale_threshold: Maximum heartbeat silence before a lease is stale.
            clock: Source of the current UTC time.
            guard_timeout: Seconds to wait for the read-check-write guard.
        """
        self._lock_path = Path(lock_path)
        self._guard_path = self._lock_path.with_name(self._lock_path.name + ".guard")
        self._lease = lease
        self._stale_threshold = stale_threshold
        self._clock = clock
        self._guard_timeout = guard_timeout

    @classmethod
    def from_config(
        cls,
        paths: WorkspacePaths,
        config: LockConfig,
        *,
        clock: Clock = utc_now,
    ) -> WorkspaceLockManager:
        return cls(
            paths.lock_file,
            lease=config.lease,
            stale_threshold=config.stale_threshold,
            clock=clock,
        )

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def lease(self) -> timedelta:
        return self._lease

    # -------------------------------------------------------------------------
    # Reading and expiry
    # -------------------------------------------------------------------------

    def _read_lock(self) -> WorkspaceLock | None:
        try:
            content = read_text(self._lock_path)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Could not read lock file %s: %s", self._lock_path, e)
            return None

        try:
            return WorkspaceLock.model_validate(json.loads(content))
        except (json.JSONDecodeError, ValidationError) as e:
            log.warning("Ignoring malformed lock file %s: %s", self._lock_path, e)
            return None

    async def check_lock(self) -> WorkspaceLock | None:
        """Return the lease currently on disk, or None. Never raises."""
        return await asyncio.to_thread(self._read_lock)

    def is_lock_expired(self, lock: WorkspaceLock, now: datetime | None = None) -> bool:
        """True if the lease lapsed or its holder stopped heartbeating.

        Both checks are kept: the staleness bound catches a holder whose
        heartbeats stopped while its lease end was still in the future.
        """
        now = now or self._clock()
        return now > lock.expires_at or (now - lock.last_heartbeat) > self._stale_threshold

    def minutes_remaining(self, lock: WorkspaceLock, now: datetime | None = None) -> int:
        now = now or self._clock()
        return round_minutes(lock.expires_at - now)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _write_lock(self, lock: WorkspaceLock) -> None:
        atomic_write_text(self._lock_path, lock.to_json())

    def _guard(self) -> FileLock:
        return FileLock(self._guard_path, timeout=self._guard_timeout)

    def _acquire_sync(
        self, agent_id: str, session_id: str, force: bool, reentrant: bool
    ) -> LockResult:
        self._lock_path.parent.mkdir(parents=True, exist_ok=True)
        with self._guard():
            existing = self._read_lock()
            now = self._clock()

            if existing and not self.is_lock_expired(existing, now):
                held_by_caller = reentrant and existing.agent_id == agent_id
                if not force and not held_by_caller:
                    minutes_left = self.minutes_remaining(existing, now)
                    return LockResult(
                        success=False,
                        error=(
                            f"Workspace is locked by {existing.agent_id}. "
                            f"Expires in {minutes_left} minutes. Use force=True to override."
                        ),
                    )
                if force and existing.agent_id != agent_id:
                    log.warning(
                        "Force-acquiring workspace from %s for %s", existing.agent_id, agent_id
                    )
            elif existing:
                log.info("Reclaiming expired lock held by %s", existing.agent_id)

            lock = WorkspaceLock(
                agent_id=agent_id,
                session_id=session_id,
                acquired_at=now,
                expires_at=now + self._lease,
                last_heartbeat=now,
                pid=os.getpid(),
            )
            self._write_lock(lock)

        log.info("Lock acquired by %s (session %s)", agent_id, session_id)
        return LockResult(success=True, lock=lock)

    async def acquire_lock(
        self,
        agent_id: str,
        session_id: str,
        force: bool = False,
        reentrant: bool = True,
    ) -> LockResult:
        """Claim the workspace for agent_id.

        Succeeds when there is no lease, the lease is expired or stale, the
        caller already holds it, or ``force`` is set. An expired lease is
        reclaimed even without ``force``. Conflicts and I/O failures are
        returned as a failed ``LockResult``.

        With ``reentrant=False`` a live lease under the same agent_id is a
        conflict as well. Fresh claims pass it, so two processes that
        generated the same id cannot both take the workspace.
        """
        try:
            return await asyncio.to_thread(
                self._acquire_sync, agent_id, session_id, force, reentrant
            )
        except Timeout:
            return LockResult(
                success=False,
                error=f"Failed to acquire lock: timed out waiting for {self._guard_path}",
            )
        except OSError as e:
            return LockResult(success=False, error=f"Failed to acquire lock: {e}")

    def _heartbeat_sync(self, agent_id: str) -> bool:
        if not self._lock_path.exists():
            return False
        with self._guard():
            lock = self._read_lock()
            if lock is None or lock.agent_id != agent_id:
                return False

            now = self._clock()
            refreshed = lock.model_copy(
                update={"last_heartbeat": now, "expires_at": now + self._lease}
            )
            self._write_lock(refreshed)
        return True

    async def update_lock_heartbeat(self, agent_id: str) -> bool:
        """Extend the lease held by agent_id.

        Returns False, leaving the file untouched, when there is no lease or
        another agent holds it.
        """
        try:
            return await asyncio.to_thread(self._heartbeat_sync, agent_id)
        except (OSError, Timeout) as e:
            log.error("Failed to update lock heartbeat: %s", e)
            return False

    def _release_sync(self, agent_id: str) -> bool:
        if not self._lock_path.exists():
            return False
        with self._guard():
            lock = self._read_lock()
            if lock is None or lock.agent_id != agent_id:
                return False
            self._lock_path.unlink()
        return True

    async def release_lock(self, agent_id: str) -> bool:
        """Delete the lease file if agent_id holds it."""
        try:
            released = await asyncio.to_thread(self._release_sync, agent_id)
        except (OSError, Timeout) as e:
            log.error("Failed to release lock: %s", e)
            return False
        if released:
            log.info("Lock released by %s", agent_id)
        return released

    # -------------------------------------------------------------------------
    # Display
    # -------------------------------------------------------------------------

    def format_lock_info(self, lock: WorkspaceLock, now: datetime | None = None) -> str:
        """Plain-text lock status for humans."""
        now = now or self._clock()
        minutes_left = self.minutes_remaining(lock, now)
        heartbeat_age = round_minutes(now - lock.last_heartbeat)
        acquired = lock.acquired_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        expires = f"in {minutes_left} minutes" if minutes_left > 0 else "EXPIRED"
        state = (
            "Lock is stale and can be overridden"
            if self.is_lock_expired(lock, now)
            else "Lock is active"
        )
        return (
            f"Agent: {lock.agent_id}\n"
            f"Session: {lock.session_id}\n"
            f"Acquired: {acquired}\n"
            f"Expires: {expires}\n"
            f"Last active: {heartbeat_age} minutes ago\n"
            f"{state}"
        )
