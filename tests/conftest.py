"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from devlogspace.config import reset_config
from devlogspace.coordination import WorkspaceLockManager
from devlogspace.session.activity import ActivityMarker
from devlogspace.session.analytics import create_initial_metadata
from devlogspace.session.document import MetadataStore
from devlogspace.session.schema import SessionMetadata
from devlogspace.workspace.paths import WorkspacePaths
from tests.utils import FakeClock

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Keep environment and cached config from leaking between tests."""
    for var in ("DEVLOG_PATH", "DEVLOG_LOG", "DEVLOG_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def paths(tmp_path: Path) -> WorkspacePaths:
    return WorkspacePaths.from_root(tmp_path / "devlog")


@pytest.fixture
def lock_manager(paths: WorkspacePaths, clock: FakeClock) -> WorkspaceLockManager:
    return WorkspaceLockManager(paths.lock_file, clock=clock)


@pytest.fixture
def store() -> MetadataStore:
    return MetadataStore()


@pytest.fixture
def marker(clock: FakeClock) -> ActivityMarker:
    return ActivityMarker(clock)


@pytest.fixture
def metadata(clock: FakeClock) -> SessionMetadata:
    return create_initial_metadata("agent-1", "session-1", clock())


@pytest.fixture
def workspace_doc(paths: WorkspacePaths, store: MetadataStore, metadata: SessionMetadata) -> Path:
    """A current.md with a human-readable body and embedded metadata."""
    paths.root.mkdir(parents=True, exist_ok=True)
    body = "---\nagent_id: agent-1\ntask: Parser work\n---\n\n# Current Workspace\n"
    paths.current.write_text(store.render(body, metadata), encoding="utf-8")
    return paths.current
