"""Per-process workspace session: claim, status, archive and release.

``WorkspaceSession`` owns one lock manager, metadata store, activity marker,
heartbeat monitor and tool tracker, so nothing about the running session lives
in module globals. Protocol servers create one per process and wrap their
tools with ``session.tracker.wrap_tools``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from devlogspace.clock import Clock, utc_now
from devlogspace.config import Config, get_config
from devlogspace.coordination import LockResult, WorkspaceLock, WorkspaceLockManager
from devlogspace.logging import get_logger, set_log_agent
from devlogspace.session.activity import ActivityMarker
from devlogspace.session.analytics import (
    calculate_duration,
    create_initial_metadata,
    format_duration,
    generate_session_summary,
    total_tool_calls,
)
from devlogspace.session.document import MetadataStore
from devlogspace.session.heartbeat import HeartbeatMonitor
from devlogspace.session.schema import SessionMetadata
from devlogspace.session.tracker import ToolUsageTracker
from devlogspace.workspace.files import unlink_async, write_text_async
from devlogspace.workspace.paths import (
    WorkspacePaths,
    generate_agent_id,
    get_current_workspace,
    parse_agent_from_content,
    render_front_matter,
    resolve_workspace_root,
)

log = get_logger("session")

LOG_ENTRY_KINDS = ("progress", "note", "issue", "decision")


@dataclass
class ClaimResult:
    """Outcome of claiming the workspace."""

    success: bool
    agent_id: str
    session_id: str
    error: str | None = None
    lock: WorkspaceLock | None = None


def make_session_id(agent_id: str, now: datetime) -> str:
    return f"session-{now:%Y-%m-%dT%H-%M-%S}-{now.microsecond // 1000:03d}Z-{agent_id}"


def _slugify(text: str, limit: int = 30) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")[:limit]


class WorkspaceSession:
    """The workspace as seen by one agent process."""

    def __init__(
        self,
        paths: WorkspacePaths,
        config: Config | None = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the session and its owned components.

        Args:
            paths: Workspace locations.
            config: Timing and lease policy; defaults to the global config.
            clock: Source of the current UTC time, shared by all components.
        """
        config = config or get_config()
        self._paths = paths
        self._clock = clock
        self._agent_id: str | None = None
        self._session_id: str | None = None

        self.lock_manager = WorkspaceLockManager.from_config(paths, config.lock, clock=clock)
        self.store = MetadataStore()
        self.marker = ActivityMarker(clock)
        self.heartbeat = HeartbeatMonitor(
            paths=paths,
            lock_manager=self.lock_manager,
            store=self.store,
            marker=self.marker,
            interval=config.heartbeat.interval,
            inactivity_threshold=config.heartbeat.inactivity_threshold,
            clock=clock,
        )
        self.tracker = ToolUsageTracker(
            paths=paths,
            lock_manager=self.lock_manager,
            store=self.store,
            marker=self.marker,
            debounce=config.tracking.debounce_seconds,
            inactivity_threshold=config.heartbeat.inactivity_threshold,
            clock=clock,
        )
        self._enable_tracking = config.tracking.enabled_on_claim

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        *,
        clock: Clock = utc_now,
    ) -> WorkspaceSession:
        config = config or get_config()
        paths = WorkspacePaths.from_root(resolve_workspace_root(config.workspace.root))
        return cls(paths, config, clock=clock)

    @property
    def paths(self) -> WorkspacePaths:
        return self._paths

    @property
    def agent_id(self) -> str | None:
        return self._agent_id

    @property
    def session_id(self) -> str | None:
        return self._session_id

    # -------------------------------------------------------------------------
    # Claim
    # -------------------------------------------------------------------------

    def _render_document(
        self,
        task: str,
        now: datetime,
        lock: WorkspaceLock,
        tags: dict[str, Any] | None,
    ) -> str:
        stamp = now.isoformat()
        fields: dict[str, object] = {
            "agent_id": lock.agent_id,
            "session_id": lock.session_id,
            "session_start": stamp,
            "last_active": stamp,
            "task": task,
        }
        if tags:
            fields["tags"] = tags

        expires = lock.expires_at.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        body = (
            "# Current Workspace\n\n"
            f"## Active Task\n{task}\n\n"
            "## Session Info\n"
            f"- Agent: {lock.agent_id}\n"
            f"- Session: {lock.session_id}\n"
            f"- Started: {stamp}\n"
            f"- Lock expires: {expires}\n\n"
            "## Progress\n\n"
            "- [ ] Task started\n"
        )
        return f"{render_front_matter(fields)}\n{body}"

    async def claim(
        self,
        task: str,
        force: bool = False,
        tags: dict[str, Any] | None = None,
    ) -> ClaimResult:
        """Take the workspace lease and start a fresh session document.

        On success tool tracking is enabled and the heartbeat started. A lock
        conflict is returned as a failed result; if the document cannot be
        written the lease is released again. A live lease under the freshly
        generated id counts as a conflict, since this process never held it.
        """
        now = self._clock()
        workspace = await get_current_workspace(self._paths)
        current_agent = (
            parse_agent_from_content(workspace.content).agent_id if workspace.content else None
        )
        holder = await self.lock_manager.check_lock()
        agent_id = generate_agent_id(now, current_agent, holder.agent_id if holder else None)
        session_id = make_session_id(agent_id, now)

        result: LockResult = await self.lock_manager.acquire_lock(
            agent_id, session_id, force, reentrant=False
        )
        if not result.success or result.lock is None:
            return ClaimResult(False, agent_id, session_id, error=result.error)

        self._agent_id = agent_id
        self._session_id = session_id

        metadata = create_initial_metadata(agent_id, session_id, now)
        metadata.session.lock_acquired = result.lock.acquired_at
        metadata.session.lock_expires = result.lock.expires_at

        document = self._render_document(task, now, result.lock, tags)
        try:
            await write_text_async(self._paths.current, self.store.render(document, metadata))
        except OSError as e:
            await self.lock_manager.release_lock(agent_id)
            self._agent_id = self._session_id = None
            return ClaimResult(
                False, agent_id, session_id, error=f"Failed to claim workspace: {e}"
            )

        self.marker.touch(now)
        set_log_agent(agent_id)
        if self._enable_tracking:
            self.tracker.enable()
        self.heartbeat.start(agent_id)
        log.info("Workspace claimed by %s for %r", agent_id, task)
        return ClaimResult(True, agent_id, session_id, lock=result.lock)

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    async def status(self) -> str:
        """Human-readable workspace, lock and tracking status."""
        workspace = await get_current_workspace(self._paths)
        lock = await self.lock_manager.check_lock()

        if not workspace.exists or not workspace.content:
            if lock:
                return (
                    "No active workspace, but found existing lock:\n\n"
                    f"{self.lock_manager.format_lock_info(lock)}\n\n"
                    "Claim the workspace to start a new session."
                )
            return "No active workspace found. Claim the workspace to create one."

        info = parse_agent_from_content(workspace.content)
        lines = [
            "Workspace Status:",
            "",
            f"Agent ID: {info.agent_id or 'Not set'}",
            f"Task: {info.task or 'Unknown'}",
            f"Last Active: {info.last_active or 'Unknown'}",
        ]
        if lock:
            lines += ["", "Lock Status:", self.lock_manager.format_lock_info(lock)]

        metadata = self.store.parse(workspace.content)
        if metadata:
            lines += ["", *self._tracking_lines(metadata)]
        return "\n".join(lines)

    @staticmethod
    def _tracking_lines(metadata: SessionMetadata) -> list[str]:
        active = sum(1 for t in metadata.tasks if t.status == "active")
        completed = sum(1 for t in metadata.tasks if t.status == "completed")
        timing = metadata.timing
        elapsed = timing.active_minutes + timing.pause_minutes
        return [
            "Session Tracking:",
            f"Duration: {format_duration(elapsed)} "
            f"(Active: {format_duration(timing.active_minutes)})",
            f"Tasks: {active} active, {completed} completed",
            f"Tool calls: {total_tool_calls(metadata)} total",
            f"Pauses: {len(timing.pauses)}",
        ]

    # -------------------------------------------------------------------------
    # Progress log and archive
    # -------------------------------------------------------------------------

    async def log_entry(self, entry: str, kind: str = "progress") -> bool:
        """Append a timestamped line to the workspace document.

        Returns False when there is no workspace document.
        """
        if kind not in LOG_ENTRY_KINDS:
            raise ValueError(f"Unknown log entry kind: {kind}")
        workspace = await get_current_workspace(self._paths)
        if not workspace.exists or workspace.content is None:
            return False
        stamp = self._clock().strftime("%H:%M:%S")
        line = f"\n\n[{stamp}] ({kind}) {entry}\n"
        content = self.store.region.insert_before(workspace.content, line)
        await write_text_async(self._paths.current, content)
        return True

    async def archive(self, reason: str, keep_active: bool = True) -> Path | None:
        """Save the workspace and its analytics to ``daily/``.

        Finalizes session end and total duration first. Unless keep_active,
        the session is then released and the workspace document removed.

        Returns:
            Path of the archived log, or None when there is no workspace.
        """
        workspace = await get_current_workspace(self._paths)
        if not workspace.exists or workspace.content is None:
            return None

        await self.tracker.flush_tool_tracking()

        now = self._clock()
        metadata = await self.store.extract(self._paths.current)
        if metadata:
            metadata.session.end = now
            metadata.timing.total_minutes = calculate_duration(metadata.session.start, now)
            await self.store.update(self._paths.current, metadata)
            workspace = await get_current_workspace(self._paths)

        content = workspace.content or ""
        info = parse_agent_from_content(content)
        task = info.task or "session"
        filename = f"{now:%Y-%m-%d-%Hh%M}-{now:%A}".lower() + f"-session-{_slugify(task)}.md"
        archive_path = self._paths.daily_dir / filename

        fields: dict[str, object] = {
            "title": f"Session: {task}",
            "date": now.isoformat(),
            "agent_id": info.agent_id or "unknown",
            "dump_reason": reason,
        }
        if metadata:
            fields.update(
                session_start=metadata.session.start.isoformat(),
                session_end=now.isoformat(),
                duration_minutes=metadata.timing.total_minutes,
                duration_hours=round(metadata.timing.total_minutes / 60, 1),
            )
        fields["tags"] = {
            "type": "session",
            "scope": metadata.activity_breakdown.active_kinds() if metadata else ["general"],
            "status": "paused" if keep_active else "completed",
            "focus": task,
        }

        parts = [
            render_front_matter(fields),
            f"# Session: {task}\n",
            f"**Date**: {now:%Y-%m-%d} ({now:%A})",
            f"**Agent**: {info.agent_id or 'unknown'}",
            f"**Reason**: {reason}\n",
        ]
        if metadata and metadata.tasks:
            parts.append("## Summary")
            for t in metadata.tasks:
                if t.status == "completed":
                    parts.append(f"- [x] {t.title} ({format_duration(t.duration_minutes or 0)})")
                elif t.status == "active":
                    parts.append(f"- [ ] {t.title}")
            parts.append("")
        parts += ["## Workspace Content at Time of Archive\n", content]
        if metadata:
            parts += ["", generate_session_summary(metadata)]

        await write_text_async(archive_path, "\n".join(parts) + "\n")
        log.info("Session archived to %s (%s)", archive_path, reason)

        if keep_active:
            link = f"{self._paths.daily_dir.name}/{filename}"
            pointer = f"\n\nSession archived to: [{filename}]({link})\n"
            await write_text_async(
                self._paths.current, self.store.region.insert_before(content, pointer)
            )
        else:
            await self.release(agent_id=info.agent_id)
            await unlink_async(self._paths.current)
        return archive_path

    # -------------------------------------------------------------------------
    # Release
    # -------------------------------------------------------------------------

    async def release(self, agent_id: str | None = None) -> bool:
        """Flush tracking, stop the timers and give up the lease.

        Returns:
            True if the lease was held by this session's agent and removed.
        """
        await self.tracker.flush_tool_tracking()
        self.tracker.disable()
        self.heartbeat.stop()

        holder = agent_id or self._agent_id
        if holder is None:
            return False
        released = await self.lock_manager.release_lock(holder)
        if holder == self._agent_id:
            self._agent_id = self._session_id = None
            set_log_agent(None)
        return released
