"""Workspace path convention and current-document access.

Layout under the workspace root:
  current.md               the shared workspace document
  daily/                   archived session logs
  .mcp/workspace.lock      the lease file
  .mcp/config.yaml         project-level config
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import yaml

from devlogspace.config import get_config
from devlogspace.config.paths import STATE_DIR, get_default_workspace_root
from devlogspace.workspace.files import read_text_async

CURRENT_DOCUMENT = "current.md"
LOCK_FILENAME = "workspace.lock"
DAILY_DIR = "daily"

_FRONT_MATTER = re.compile(r"\A---\r?\n(.*?)\r?\n---\r?\n", re.DOTALL)
_AGENT_ID = re.compile(r"^(agent-\d{12})(?:-(\d+))?$")


class _FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that keeps timestamps as the strings they were written as."""


_FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


@dataclass(frozen=True)
class WorkspacePaths:
    """Resolved file locations for one workspace root."""

    root: Path

    @classmethod
    def from_root(cls, root: str | Path) -> WorkspacePaths:
        return cls(root=Path(root))

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIR

    @property
    def lock_file(self) -> Path:
        return self.state_dir / LOCK_FILENAME

    @property
    def config_file(self) -> Path:
        return self.state_dir / "config.yaml"

    @property
    def current(self) -> Path:
        return self.root / CURRENT_DOCUMENT

    @property
    def daily_dir(self) -> Path:
        return self.root / DAILY_DIR


@dataclass
class WorkspaceInfo:
    """Snapshot of the current workspace document."""

    path: Path
    content: str | None
    exists: bool


@dataclass
class AgentInfo:
    """Agent fields parsed from the workspace front matter."""

    agent_id: str | None
    last_active: str | None
    task: str | None = None


def resolve_workspace_root(root: str | Path | None = None) -> Path:
    """Resolve the workspace root from an explicit value or the loaded config."""
    if root is not None:
        return Path(root)
    configured = get_config().workspace.root
    if configured:
        return Path(configured)
    return get_default_workspace_root()


async def get_current_workspace(paths: WorkspacePaths) -> WorkspaceInfo:
    """Read the current workspace document, reporting absence instead of raising."""
    try:
        content = await read_text_async(paths.current)
    except OSError:
        return WorkspaceInfo(path=paths.current, content=None, exists=False)
    return WorkspaceInfo(path=paths.current, content=content, exists=True)


def parse_front_matter(content: str) -> dict[str, object]:
    """Return the YAML front matter mapping of a document, or an empty dict.

    Timestamps are returned as written, not as datetime objects.
    """
    match = _FRONT_MATTER.match(content)
    if not match:
        return {}
    try:
        data = yaml.load(match.group(1), Loader=_FrontMatterLoader)
    except yaml.YAMLError:
        return {}
    return data if isinstance(data, dict) else {}


def render_front_matter(fields: dict[str, object]) -> str:
    body = yaml.safe_dump(fields, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return f"---\n{body}---\n"


def parse_agent_from_content(content: str) -> AgentInfo:
    fields = parse_front_matter(content)

    def _str(key: str) -> str | None:
        value = fields.get(key)
        return str(value) if value is not None else None

    return AgentInfo(
        agent_id=_str("agent_id"),
        last_active=_str("last_active"),
        task=_str("task"),
    )


def generate_agent_id(now: datetime, *known_agents: str | None) -> str:
    """Build ``agent-YYMMDDHHMMSS``, adding a ``-N`` suffix on collision.

    ``known_agents`` are ids already in use, e.g. the agent named by the
    workspace document and the lease holder. The suffix goes one past the
    highest of them that shares this second's id.
    """
    agent_id = f"agent-{now:%y%m%d%H%M%S}"
    counter = 0
    for known in known_agents:
        match = _AGENT_ID.match(known or "")
        if match and match.group(1) == agent_id:
            counter = max(counter, int(match.group(2) or 1) + 1)
    return f"{agent_id}-{counter}" if counter else agent_id
