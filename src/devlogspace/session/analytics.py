"""Metadata construction, tool classification and human-readable summaries."""

from __future__ import annotations

from datetime import datetime

from devlogspace.clock import round_minutes
from devlogspace.session.schema import (
    ActivityKind,
    SessionInfo,
    SessionMetadata,
)

# Checked in order; the first group whose keyword occurs in the tool name wins.
ACTIVITY_KEYWORDS: tuple[tuple[ActivityKind, tuple[str, ...]], ...] = (
    ("coding", ("Edit", "Write", "MultiEdit", "NotebookEdit")),
    ("testing", ("Bash", "eslint", "TodoWrite")),
    ("research", ("Read", "Grep", "Search", "WebFetch", "WebSearch", "perplexity")),
    ("planning", ("think", "exit_plan_mode", "devlog_plan", "devlog_whats_next")),
)

# Each breakdown count stands for roughly one heartbeat interval of work.
MINUTES_PER_ACTIVITY = 5


def create_initial_metadata(agent_id: str, session_id: str, now: datetime) -> SessionMetadata:
    return SessionMetadata(
        session=SessionInfo(
            id=session_id,
            start=now,
            end=None,
            agent_id=agent_id,
            last_heartbeat=now,
        )
    )


def classify_tool_activity(tool_name: str) -> ActivityKind:
    for kind, keywords in ACTIVITY_KEYWORDS:
        if any(keyword in tool_name for keyword in keywords):
            return kind
    return "other"


def calculate_duration(start: datetime, end: datetime) -> int:
    """Whole minutes between two timestamps."""
    return round_minutes(end - start)


def format_duration(minutes: int) -> str:
    """Format minutes as ``45m``, ``2h`` or ``1h 30m``."""
    hours, mins = divmod(minutes, 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def total_tool_calls(metadata: SessionMetadata) -> int:
    return sum(metadata.tool_usage.values())


def generate_session_summary(metadata: SessionMetadata) -> str:
    """Markdown analytics block appended to archived session logs."""
    completed = [t for t in metadata.tasks if t.status == "completed"]
    iterations = sum(t.iterations for t in metadata.tasks)
    top_tools = sorted(metadata.tool_usage.items(), key=lambda item: item[1], reverse=True)[:5]
    timing = metadata.timing
    breakdown = metadata.activity_breakdown

    lines = [
        "## Session Analytics",
        "",
        f"**Duration**: {format_duration(timing.total_minutes)} "
        f"(Active: {format_duration(timing.active_minutes)})",
        f"**Tasks**: {len(completed)} completed, {len(metadata.tasks)} total",
        f"**Iterations**: {iterations} total",
        f"**Pauses**: {len(timing.pauses)} ({format_duration(timing.pause_minutes)})",
        "",
        "**Top Tools**: " + ", ".join(f"{name} ({count})" for name, count in top_tools),
        "",
        "**Activity Breakdown**:",
    ]
    for label, count in (
        ("Coding", breakdown.coding),
        ("Testing", breakdown.testing),
        ("Research", breakdown.research),
        ("Planning", breakdown.planning),
    ):
        lines.append(f"- {label}: {format_duration(count * MINUTES_PER_ACTIVITY)}")
    return "\n".join(lines)
