"""Workspace lease coordination.

A single lease file grants one agent process at a time exclusive use of the
shared devlog workspace. Leases expire unless refreshed by heartbeats.
"""

from devlogspace.coordination.lock_manager import WorkspaceLockManager
from devlogspace.coordination.schema import LockResult, WorkspaceLock

__all__ = [
    "LockResult",
    "WorkspaceLock",
    "WorkspaceLockManager",
]
