"""Tests for the devlogspace command line."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from devlogspace.__main__ import build_parser, main
from devlogspace.clock import utc_now
from devlogspace.coordination import WorkspaceLock
from devlogspace.session.analytics import create_initial_metadata
from devlogspace.session.document import MetadataStore
from devlogspace.workspace.paths import WorkspacePaths


@pytest.fixture
def root(tmp_path: Path) -> Path:
    return tmp_path / "devlog"


def _write_lock(root: Path, agent_id: str) -> Path:
    now = utc_now()
    lock = WorkspaceLock(
        agent_id=agent_id,
        session_id=f"session-{agent_id}",
        acquired_at=now,
        expires_at=now + timedelta(minutes=30),
        last_heartbeat=now,
        pid=1234,
    )
    lock_file = WorkspacePaths.from_root(root).lock_file
    lock_file.parent.mkdir(parents=True)
    lock_file.write_text(lock.to_json(), encoding="utf-8")
    return lock_file


class TestParser:
    def test_release_requires_agent(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["release"])

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    def test_lock_unlocked(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--root", str(root), "lock"]) == 0
        assert capsys.readouterr().out.strip() == "Workspace is unlocked."

    def test_lock_held(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        _write_lock(root, "agent-260302090000")

        assert main(["--root", str(root), "lock"]) == 0

        out = capsys.readouterr().out
        assert "Agent: agent-260302090000" in out
        assert "Lock is active" in out

    def test_root_from_env(
        self, root: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        _write_lock(root, "agent-env")
        monkeypatch.setenv("DEVLOG_PATH", str(root))

        assert main(["lock"]) == 0
        assert "Agent: agent-env" in capsys.readouterr().out

    def test_release(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        lock_file = _write_lock(root, "agent-260302090000")

        assert main(["--root", str(root), "release", "--agent", "agent-260302090000"]) == 0

        assert not lock_file.exists()
        assert "Released lock held by agent-260302090000." in capsys.readouterr().out

    def test_release_wrong_agent(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        lock_file = _write_lock(root, "agent-260302090000")
        before = lock_file.read_bytes()

        assert main(["--root", str(root), "release", "--agent", "agent-other"]) == 1

        assert lock_file.read_bytes() == before
        assert "agent-other does not hold the workspace lock." in capsys.readouterr().err

    def test_status_empty(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["--root", str(root), "status"]) == 0
        assert "No active workspace found" in capsys.readouterr().out

    def test_summary_without_metadata(
        self, root: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["--root", str(root), "summary"]) == 1
        assert "No session metadata found." in capsys.readouterr().err

    def test_summary(self, root: Path, capsys: pytest.CaptureFixture[str]) -> None:
        metadata = create_initial_metadata("agent-1", "session-1", utc_now())
        metadata.tool_usage = {"Edit": 3}
        metadata.activity_breakdown.coding = 3
        paths = WorkspacePaths.from_root(root)
        paths.root.mkdir(parents=True)
        paths.current.write_text(
            MetadataStore().render("# Current Workspace\n", metadata), encoding="utf-8"
        )

        assert main(["--root", str(root), "summary"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("## Session Analytics")
        assert "**Top Tools**: Edit (3)" in out
        assert "- Coding: 15m" in out
