"""Configuration schema dataclasses for devlogspace.

All fields carry defaults so partial configs merge cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any


@dataclass
class WorkspaceConfig:
    """Where the shared devlog workspace lives."""

    root: str | None = None  # Default: <cwd>/devlog


@dataclass
class LockConfig:
    """Lease policy for the workspace lock.

    Example config.yaml:
        lock:
          lease_minutes: 30
          stale_minutes: 60
    """

    lease_minutes: float = 30.0  # Soft lease, refreshed by every heartbeat
    stale_minutes: float = 60.0  # Hard bound on heartbeat silence

    @property
    def lease(self) -> timedelta:
        return timedelta(minutes=self.lease_minutes)

    @property
    def stale_threshold(self) -> timedelta:
        return timedelta(minutes=self.stale_minutes)


@dataclass
class HeartbeatConfig:
    """Heartbeat monitor timing."""

    interval_seconds: float = 300.0
    inactivity_seconds: float = 300.0  # Idle gap that counts as a pause

    @property
    def interval(self) -> timedelta:
        return timedelta(seconds=self.interval_seconds)

    @property
    def inactivity_threshold(self) -> timedelta:
        return timedelta(seconds=self.inactivity_seconds)


@dataclass
class TrackingConfig:
    """Tool usage tracker batching."""

    debounce_seconds: float = 5.0
    enabled_on_claim: bool = True


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, wins over level
    file: str | None = None


@dataclass
class Config:
    """Root configuration object."""

    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    tracking: TrackingConfig = field(default_factory=TrackingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections, kept for collaborators
    extra: dict[str, Any] = field(default_factory=dict)
