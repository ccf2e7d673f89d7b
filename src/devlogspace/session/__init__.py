"""Session telemetry: embedded metadata, heartbeat and tool usage tracking."""

from devlogspace.session.activity import ActivityMarker
from devlogspace.session.analytics import (
    calculate_duration,
    classify_tool_activity,
    create_initial_metadata,
    format_duration,
    generate_session_summary,
)
from devlogspace.session.document import (
    METADATA_END,
    METADATA_START,
    EmbeddedRegion,
    MetadataStore,
    MetadataWriteError,
    extract_metadata,
    update_metadata,
)
from devlogspace.session.heartbeat import HeartbeatMonitor
from devlogspace.session.schema import (
    ActivityBreakdown,
    PauseRecord,
    SessionInfo,
    SessionMetadata,
    TaskRecord,
    Timing,
)
from devlogspace.session.tracker import ToolDefinition, ToolEvent, ToolUsageTracker
from devlogspace.session.workspace_session import ClaimResult, WorkspaceSession

__all__ = [
    # Metadata model
    "ActivityBreakdown",
    "PauseRecord",
    "SessionInfo",
    "SessionMetadata",
    "TaskRecord",
    "Timing",
    # Embedded block storage
    "METADATA_END",
    "METADATA_START",
    "EmbeddedRegion",
    "MetadataStore",
    "MetadataWriteError",
    "extract_metadata",
    "update_metadata",
    # Analytics
    "calculate_duration",
    "classify_tool_activity",
    "create_initial_metadata",
    "format_duration",
    "generate_session_summary",
    # Timers
    "ActivityMarker",
    "HeartbeatMonitor",
    "ToolDefinition",
    "ToolEvent",
    "ToolUsageTracker",
    # Lifecycle
    "ClaimResult",
    "WorkspaceSession",
]
