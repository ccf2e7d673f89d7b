"""devlogspace: lease-coordinated devlog workspace with session telemetry."""

__version__ = "0.1.0"

# Public API
from devlogspace.config import Config, get_config, load_config
from devlogspace.coordination import LockResult, WorkspaceLock, WorkspaceLockManager
from devlogspace.session import (
    ActivityMarker,
    HeartbeatMonitor,
    MetadataStore,
    SessionMetadata,
    ToolDefinition,
    ToolUsageTracker,
    WorkspaceSession,
    extract_metadata,
    update_metadata,
)
from devlogspace.workspace import WorkspacePaths

__all__ = [
    # Config
    "Config",
    "load_config",
    "get_config",
    # Lock
    "LockResult",
    "WorkspaceLock",
    "WorkspaceLockManager",
    # Session
    "ActivityMarker",
    "HeartbeatMonitor",
    "MetadataStore",
    "SessionMetadata",
    "ToolDefinition",
    "ToolUsageTracker",
    "WorkspaceSession",
    "extract_metadata",
    "update_metadata",
    # Workspace
    "WorkspacePaths",
]
