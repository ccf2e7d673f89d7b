"""Session metadata embedded in the workspace document.

The JSON shape is shared with other devlog tools, so unknown fields are kept
and written back unchanged.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from devlogspace.clock import UtcDatetime

ActivityKind = Literal["coding", "testing", "research", "planning", "other"]
TaskStatus = Literal["active", "paused", "completed", "abandoned"]

PAUSE_REASON_INACTIVE = "auto_inactive"


class DevlogModel(BaseModel):
    """Base model for metadata sections; preserves fields written by other tools."""

    model_config = ConfigDict(extra="allow")


class SessionInfo(DevlogModel):
    id: str
    start: UtcDatetime
    end: UtcDatetime | None = None
    agent_id: str
    lock_acquired: UtcDatetime | None = None
    lock_expires: UtcDatetime | None = None
    last_heartbeat: UtcDatetime


class PauseRecord(DevlogModel):
    start: UtcDatetime
    end: UtcDatetime
    reason: str = PAUSE_REASON_INACTIVE


class Timing(DevlogModel):
    total_minutes: int = 0
    active_minutes: int = 0
    pause_minutes: int = 0
    pauses: list[PauseRecord] = Field(default_factory=list)  # Append-only, chronological


class TaskRecord(DevlogModel):
    id: str
    title: str
    start: UtcDatetime
    end: UtcDatetime | None = None
    duration_minutes: int | None = None
    iterations: int = 0
    status: TaskStatus = "active"
    tool_usage: dict[str, int] = Field(default_factory=dict)


class ActivityBreakdown(DevlogModel):
    coding: int = 0
    testing: int = 0
    research: int = 0
    planning: int = 0
    other: int = 0

    def increment(self, kind: ActivityKind) -> None:
        setattr(self, kind, getattr(self, kind) + 1)

    def active_kinds(self) -> list[str]:
        return [kind for kind in ("coding", "testing", "research", "planning", "other")
                if getattr(self, kind) > 0]


class SessionMetadata(DevlogModel):
    """Timing and tool-usage record for one session.

    Counters (``tool_usage``, ``activity_breakdown``) only ever grow.
    """

    session: SessionInfo
    timing: Timing = Field(default_factory=Timing)
    tasks: list[TaskRecord] = Field(default_factory=list)
    active_task: str | None = None
    tool_usage: dict[str, int] = Field(default_factory=dict)
    activity_breakdown: ActivityBreakdown = Field(default_factory=ActivityBreakdown)

    def find_task(self, task_id: str | None) -> TaskRecord | None:
        if task_id is None:
            return None
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def add_pause(self, start: datetime, end: datetime, minutes: int) -> PauseRecord:
        pause = PauseRecord(start=start, end=end, reason=PAUSE_REASON_INACTIVE)
        self.timing.pauses.append(pause)
        self.timing.pause_minutes += minutes
        return pause

    def to_json(self) -> str:
        return self.model_dump_json(indent=2)
