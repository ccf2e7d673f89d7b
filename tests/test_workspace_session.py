"""Tests for claiming, reporting, archiving and releasing the workspace."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import timedelta

import pytest

from devlogspace.config import Config
from devlogspace.session import workspace_session
from devlogspace.session.workspace_session import WorkspaceSession, make_session_id
from devlogspace.workspace.paths import WorkspacePaths, parse_front_matter

from tests.utils import T0, FakeClock

AGENT = "agent-260302090000"


@pytest.fixture
async def session(paths: WorkspacePaths, clock: FakeClock) -> AsyncIterator[WorkspaceSession]:
    session = WorkspaceSession(paths, Config(), clock=clock)
    yield session
    session.heartbeat.stop()
    session.tracker.disable()


@pytest.fixture
async def rival(paths: WorkspacePaths, clock: FakeClock) -> AsyncIterator[WorkspaceSession]:
    """A second process sharing the same workspace."""
    session = WorkspaceSession(paths, Config(), clock=clock)
    yield session
    session.heartbeat.stop()
    session.tracker.disable()


class TestClaim:
    """Taking the workspace."""

    @pytest.mark.asyncio
    async def test_claim_fresh_workspace(
        self, session: WorkspaceSession, paths: WorkspacePaths
    ) -> None:
        result = await session.claim("Parser work", tags={"scope": ["coding"]})

        assert result.success
        assert result.agent_id == AGENT
        assert result.session_id == make_session_id(AGENT, T0)
        assert session.agent_id == AGENT
        assert session.tracker.enabled
        assert session.heartbeat.running

        lock = await session.lock_manager.check_lock()
        assert lock is not None
        assert lock.agent_id == AGENT

        content = paths.current.read_text(encoding="utf-8")
        front = parse_front_matter(content)
        assert front["agent_id"] == AGENT
        assert front["task"] == "Parser work"
        assert front["tags"] == {"scope": ["coding"]}
        assert "## Active Task\nParser work" in content

        metadata = await session.store.extract(paths.current)
        assert metadata is not None
        assert metadata.session.agent_id == AGENT
        assert metadata.session.lock_acquired == T0
        assert metadata.session.lock_expires == T0 + timedelta(minutes=30)

    def test_session_id_format(self) -> None:
        assert make_session_id(AGENT, T0) == f"session-2026-03-02T09-00-00-000Z-{AGENT}"

    @pytest.mark.asyncio
    async def test_second_process_is_refused(
        self, session: WorkspaceSession, rival: WorkspaceSession
    ) -> None:
        await session.claim("Parser work")

        result = await rival.claim("Something else")

        assert not result.success
        assert result.agent_id == f"{AGENT}-2"
        assert result.error is not None
        assert f"locked by {AGENT}" in result.error
        assert rival.agent_id is None
        assert not rival.heartbeat.running
        lock = await session.lock_manager.check_lock()
        assert lock is not None and lock.agent_id == AGENT

    @pytest.mark.asyncio
    async def test_force_takes_over(
        self, session: WorkspaceSession, rival: WorkspaceSession
    ) -> None:
        await session.claim("Parser work")

        result = await rival.claim("Urgent fix", force=True)

        assert result.success
        lock = await rival.lock_manager.check_lock()
        assert lock is not None and lock.agent_id == f"{AGENT}-2"

    @pytest.mark.asyncio
    async def test_expired_lease_is_reclaimed(
        self, session: WorkspaceSession, rival: WorkspaceSession, clock: FakeClock
    ) -> None:
        await session.claim("Parser work")
        session.heartbeat.stop()
        clock.advance(minutes=31)

        result = await rival.claim("Next task")

        assert result.success
        assert result.agent_id == "agent-260302093100"

    @pytest.mark.asyncio
    async def test_failed_write_releases_lease(
        self, session: WorkspaceSession, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def failing_write(path, content) -> None:
            raise PermissionError("read-only workspace")

        monkeypatch.setattr(workspace_session, "write_text_async", failing_write)

        result = await session.claim("Parser work")

        assert not result.success
        assert result.error is not None
        assert "read-only workspace" in result.error
        assert await session.lock_manager.check_lock() is None
        assert session.agent_id is None
        assert not session.heartbeat.running

    @pytest.mark.asyncio
    async def test_concurrent_claims_in_same_second(
        self, session: WorkspaceSession, rival: WorkspaceSession
    ) -> None:
        ra, rb = await asyncio.gather(session.claim("A task"), rival.claim("B task"))

        assert [ra.success, rb.success].count(True) == 1
        winner, loser = (session, rival) if ra.success else (rival, session)
        lock = await winner.lock_manager.check_lock()
        assert lock is not None and lock.agent_id == winner.agent_id
        assert loser.agent_id is None
        assert not loser.heartbeat.running
        assert not loser.tracker.enabled

    @pytest.mark.asyncio
    async def test_lease_holder_counts_for_agent_suffix(
        self, session: WorkspaceSession, rival: WorkspaceSession, paths: WorkspacePaths
    ) -> None:
        await session.lock_manager.acquire_lock(AGENT, "session-x")
        assert not paths.current.exists()

        result = await rival.claim("B task")

        assert not result.success
        assert result.agent_id == f"{AGENT}-2"
        assert result.error is not None
        assert f"locked by {AGENT}" in result.error


class TestStatus:
    @pytest.mark.asyncio
    async def test_no_workspace(self, session: WorkspaceSession) -> None:
        assert await session.status() == (
            "No active workspace found. Claim the workspace to create one."
        )

    @pytest.mark.asyncio
    async def test_lock_without_workspace(
        self, session: WorkspaceSession, paths: WorkspacePaths
    ) -> None:
        await session.lock_manager.acquire_lock("agent-x", "session-x")

        status = await session.status()

        assert status.startswith("No active workspace, but found existing lock:")
        assert "Agent: agent-x" in status

    @pytest.mark.asyncio
    async def test_claimed_workspace(self, session: WorkspaceSession, clock: FakeClock) -> None:
        await session.claim("Parser work")
        session.tracker.track_tool_usage("Edit")
        session.tracker.track_tool_usage("Read")
        clock.advance(minutes=2)
        await session.tracker.flush_tool_tracking()

        status = await session.status()
        lines = status.splitlines()

        assert lines[0] == "Workspace Status:"
        assert f"Agent ID: {AGENT}" in lines
        assert "Task: Parser work" in lines
        assert "Lock Status:" in lines
        assert "Lock is active" in lines
        assert "Session Tracking:" in lines
        assert "Duration: 2m (Active: 2m)" in lines
        assert "Tool calls: 2 total" in lines
        assert "Pauses: 0" in lines


class TestLogEntry:
    @pytest.mark.asyncio
    async def test_entry_goes_before_metadata(
        self, session: WorkspaceSession, paths: WorkspacePaths, clock: FakeClock
    ) -> None:
        await session.claim("Parser work")
        clock.advance(minutes=3, seconds=15)

        assert await session.log_entry("Tokenizer done") is True
        assert await session.log_entry("Use a Pratt parser", kind="decision") is True

        content = paths.current.read_text(encoding="utf-8")
        assert "[09:03:15] (progress) Tokenizer done" in content
        assert "[09:03:15] (decision) Use a Pratt parser" in content
        assert content.index("Tokenizer done") < content.index("DEVLOG_METADATA")
        assert await session.store.extract(paths.current) is not None

    @pytest.mark.asyncio
    async def test_metadata_sentinel_in_human_text(
        self, session: WorkspaceSession, paths: WorkspacePaths
    ) -> None:
        quoted = "document <!-- DEVLOG_METADATA (do not edit manually) marker"
        await session.claim(quoted)
        assert await session.store.extract(paths.current) is not None

        assert await session.log_entry(f"explained {quoted}", kind="note") is True

        content = paths.current.read_text(encoding="utf-8")
        assert f"## Active Task\n{quoted}" in content
        assert f"(note) explained {quoted}" in content
        metadata = await session.store.extract(paths.current)
        assert metadata is not None
        assert metadata.session.agent_id == AGENT

    @pytest.mark.asyncio
    async def test_no_workspace(self, session: WorkspaceSession) -> None:
        assert await session.log_entry("lost") is False

    @pytest.mark.asyncio
    async def test_unknown_kind(self, session: WorkspaceSession) -> None:
        with pytest.raises(ValueError):
            await session.log_entry("x", kind="rant")


class TestArchive:
    @pytest.mark.asyncio
    async def test_nothing_to_archive(self, session: WorkspaceSession) -> None:
        assert await session.archive("manual") is None

    @pytest.mark.asyncio
    async def test_archive_and_finish(
        self, session: WorkspaceSession, paths: WorkspacePaths, clock: FakeClock
    ) -> None:
        await session.claim("Parser work")
        session.tracker.track_tool_usage("Edit")
        clock.advance(minutes=45)

        archive_path = await session.archive("session complete", keep_active=False)

        assert archive_path == paths.daily_dir / "2026-03-02-09h45-monday-session-parser-work.md"
        content = archive_path.read_text(encoding="utf-8")
        front = parse_front_matter(content)
        assert front["agent_id"] == AGENT
        assert front["dump_reason"] == "session complete"
        assert front["duration_minutes"] == 45
        assert front["tags"]["status"] == "completed"
        assert front["tags"]["scope"] == ["coding"]
        assert "## Workspace Content at Time of Archive" in content
        assert "## Session Analytics" in content
        assert "**Top Tools**: Edit (1)" in content

        assert not paths.current.exists()
        assert await session.lock_manager.check_lock() is None
        assert not session.heartbeat.running
        assert not session.tracker.enabled

    @pytest.mark.asyncio
    async def test_archive_keep_active(
        self, session: WorkspaceSession, paths: WorkspacePaths, clock: FakeClock
    ) -> None:
        await session.claim("Parser work")
        clock.advance(minutes=10)

        archive_path = await session.archive("checkpoint")

        assert archive_path is not None and archive_path.exists()
        content = paths.current.read_text(encoding="utf-8")
        assert f"Session archived to: [{archive_path.name}](daily/{archive_path.name})" in content

        metadata = await session.store.extract(paths.current)
        assert metadata is not None
        assert metadata.session.end == T0 + timedelta(minutes=10)
        assert metadata.timing.total_minutes == 10

        lock = await session.lock_manager.check_lock()
        assert lock is not None and lock.agent_id == AGENT
        assert session.heartbeat.running


class TestRelease:
    @pytest.mark.asyncio
    async def test_release_flushes_and_unlocks(
        self, session: WorkspaceSession, paths: WorkspacePaths
    ) -> None:
        await session.claim("Parser work")
        session.tracker.track_tool_usage("Grep")

        assert await session.release() is True

        assert await session.lock_manager.check_lock() is None
        assert not session.heartbeat.running
        assert not session.tracker.enabled
        assert session.agent_id is None
        metadata = await session.store.extract(paths.current)
        assert metadata is not None
        assert metadata.tool_usage == {"Grep": 1}

    @pytest.mark.asyncio
    async def test_release_twice(self, session: WorkspaceSession) -> None:
        await session.claim("Parser work")
        assert await session.release() is True
        assert await session.release() is False

    @pytest.mark.asyncio
    async def test_cannot_release_someone_elses_lease(
        self, session: WorkspaceSession, rival: WorkspaceSession
    ) -> None:
        await session.claim("Parser work")

        assert await rival.release() is False
        assert await rival.release(agent_id="agent-other") is False

        lock = await session.lock_manager.check_lock()
        assert lock is not None and lock.agent_id == AGENT
