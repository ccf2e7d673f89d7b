"""Workspace layout, document access and atomic file replacement."""

from devlogspace.workspace.files import atomic_write_text, read_text_async, write_text_async
from devlogspace.workspace.paths import (
    AgentInfo,
    WorkspaceInfo,
    WorkspacePaths,
    generate_agent_id,
    get_current_workspace,
    parse_agent_from_content,
    parse_front_matter,
    render_front_matter,
    resolve_workspace_root,
)

__all__ = [
    "AgentInfo",
    "WorkspaceInfo",
    "WorkspacePaths",
    "atomic_write_text",
    "generate_agent_id",
    "get_current_workspace",
    "parse_agent_from_content",
    "parse_front_matter",
    "read_text_async",
    "render_front_matter",
    "resolve_workspace_root",
    "write_text_async",
]
