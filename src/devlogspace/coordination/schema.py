"""Wire types for the workspace lease file."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from devlogspace.clock import UtcDatetime


class WorkspaceLock(BaseModel):
    """The single lease record stored in ``.mcp/workspace.lock``.

    File presence is a claim, not necessarily a valid one; validity is
    decided by ``WorkspaceLockManager.is_lock_expired``.
    """

    model_config = ConfigDict(extra="ignore")

    agent_id: str
    session_id: str
    acquired_at: UtcDatetime
    expires_at: UtcDatetime
    last_heartbeat: UtcDatetime
    pid: int | None = None  # Diagnostic only

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, exclude_none=True)


@dataclass
class LockResult:
    """Outcome of a lock acquisition attempt. Conflicts are results, not errors."""

    success: bool
    error: str | None = None
    lock: WorkspaceLock | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            data["error"] = self.error
        if self.lock is not None:
            data["lock"] = self.lock.model_dump(mode="json", exclude_none=True)
        return data
