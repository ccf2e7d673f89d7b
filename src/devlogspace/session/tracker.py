"""Tool usage tracking with debounced metadata flushes.

Every tool invocation marks activity and is queued in memory. The first event
after a flush schedules the next one; many rapid calls therefore cost a single
read-modify-write of the workspace document.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, TypeVar

from devlogspace.clock import Clock, round_minutes, utc_now
from devlogspace.logging import get_logger
from devlogspace.session.analytics import classify_tool_activity

if TYPE_CHECKING:
    from devlogspace.coordination.lock_manager import WorkspaceLockManager
    from devlogspace.session.activity import ActivityMarker
    from devlogspace.session.document import MetadataStore
    from devlogspace.workspace.paths import WorkspacePaths

log = get_logger("tracker")

DEFAULT_DEBOUNCE = 5.0
DEFAULT_INACTIVITY_THRESHOLD = timedelta(minutes=5)
MAX_PENDING = 1000

T = TypeVar("T")
ToolHandler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class ToolEvent:
    """One queued tool invocation."""

    tool_name: str
    timestamp: datetime
    task_id: str | None = None


@dataclass
class ToolDefinition:
    """A tool as registered by a protocol server: a name and an async handler."""

    name: str
    handler: ToolHandler
    description: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


def _task_id_from(context: Any) -> str | None:
    if context is None:
        return None
    if isinstance(context, Mapping):
        value = context.get("task_id", context.get("taskId"))
    else:
        value = getattr(context, "task_id", None)
    return str(value) if value is not None else None


class ToolUsageTracker:
    """Turns tool-invocation notifications into batched metadata updates.

    Owns its pending queue and flush timer; one instance per process.
    Tracking starts disabled and is switched on once a workspace is claimed.
    """

    def __init__(
        self,
        *,
        paths: WorkspacePaths,
        lock_manager: WorkspaceLockManager,
        store: MetadataStore,
        marker: ActivityMarker,
        debounce: float = DEFAULT_DEBOUNCE,
        inactivity_threshold: timedelta = DEFAULT_INACTIVITY_THRESHOLD,
        max_pending: int = MAX_PENDING,
        clock: Clock = utc_now,
    ) -> None:
        self._paths = paths
        self._lock_manager = lock_manager
        self._store = store
        self._marker = marker
        self._debounce = debounce
        self._inactivity_threshold = inactivity_threshold
        self._max_pending = max_pending
        self._clock = clock

        self._enabled = False
        self._pending: list[ToolEvent] = []
        self._flush_task: asyncio.Task[None] | None = None
        self._flush_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def pending(self) -> tuple[ToolEvent, ...]:
        return tuple(self._pending)

    @property
    def flush_scheduled(self) -> bool:
        return self._flush_task is not None

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        """Stop accepting events and cancel a scheduled flush. Queued events stay."""
        self._enabled = False
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        task, self._flush_task = self._flush_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def track_tool_usage(self, tool_name: str, context: Any = None) -> None:
        """Record one invocation of tool_name.

        Marks activity for the heartbeat monitor, queues the event and, if no
        flush is pending, schedules one after the debounce window. The queue
        keeps at most max_pending events; the oldest go first.
        """
        if not self._enabled:
            return

        now = self._clock()
        self._marker.touch(now)
        self._pending.append(ToolEvent(tool_name, now, _task_id_from(context)))
        overflow = len(self._pending) - self._max_pending
        if overflow > 0:
            del self._pending[:overflow]
            log.warning("Tool event queue full; dropped %d oldest events", overflow)

        if self._flush_task is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                log.debug("No running loop; %s stays queued until the next flush", tool_name)
                return
            self._flush_task = loop.create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self._debounce)
        self._flush_task = None
        await self._process_pending()

    async def flush_tool_tracking(self) -> None:
        """Flush queued events now and cancel the scheduled flush."""
        self._cancel_timer()
        await self._process_pending()

    async def _process_pending(self) -> None:
        async with self._flush_lock:
            if not self._pending:
                return
            try:
                metadata = await self._store.extract(self._paths.current)
                if metadata is None:
                    if not self._paths.current.exists():
                        log.info(
                            "No workspace document; dropping %d queued events", len(self._pending)
                        )
                        self._pending.clear()
                    else:
                        log.debug(
                            "No session metadata; keeping %d queued events", len(self._pending)
                        )
                    return

                events, self._pending = self._pending, []
                active_task = metadata.find_task(metadata.active_task)
                for event in events:
                    name = event.tool_name
                    metadata.tool_usage[name] = metadata.tool_usage.get(name, 0) + 1
                    if active_task is not None:
                        active_task.tool_usage[name] = active_task.tool_usage.get(name, 0) + 1
                    metadata.activity_breakdown.increment(classify_tool_activity(name))

                now = self._clock()
                last_heartbeat = metadata.session.last_heartbeat
                gap = now - last_heartbeat
                if gap > self._inactivity_threshold:
                    metadata.add_pause(last_heartbeat, now, round_minutes(gap))
                else:
                    metadata.timing.active_minutes += round_minutes(gap)

                metadata.session.last_heartbeat = now

                await self._lock_manager.update_lock_heartbeat(metadata.session.agent_id)
                await self._store.update(self._paths.current, metadata)
                log.debug("Flushed %d tool events", len(events))
            except Exception as e:
                log.error("Failed to update tool tracking: %s", e)

    def with_tool_tracking(
        self,
        tool_name: str,
        handler: Callable[..., Awaitable[T]],
    ) -> Callable[..., Awaitable[T]]:
        """Wrap an async handler so each call is tracked before it runs.

        Arguments, return value and exceptions pass through unchanged. The
        first positional argument (or the keyword arguments) is used as the
        tracking context.
        """

        @functools.wraps(handler)
        async def tracked(*args: Any, **kwargs: Any) -> T:
            self.track_tool_usage(tool_name, args[0] if args else kwargs or None)
            return await handler(*args, **kwargs)

        return tracked

    def wrap_tool(self, tool: ToolDefinition) -> ToolDefinition:
        return replace(tool, handler=self.with_tool_tracking(tool.name, tool.handler))

    def wrap_tools(self, tools: list[ToolDefinition]) -> list[ToolDefinition]:
        return [self.wrap_tool(tool) for tool in tools]
