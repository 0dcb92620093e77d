from __future__ import annotations

import asyncio
from typing import Any, Sequence

import structlog

from hyprvisor.domain.models import StateSnapshot, WorkspaceState, default_workspaces

logger = structlog.get_logger(__name__)


class StateStore:
    """Current snapshot of the monitored session facts.

    Producers mutate it through ``update`` (or the typed setters), always under the
    shared lock. Subscribers are never notified from here; the broadcast loop picks
    the new values up on its next tick.
    """

    FIELDS = ("workspaces", "window_title", "sink_volume", "source_volume")

    def __init__(self, lock: asyncio.Lock, workspace_count: int) -> None:
        self._lock = lock
        self._workspace_count = workspace_count
        self._snapshot = StateSnapshot(workspaces=default_workspaces(workspace_count))

    @property
    def workspace_count(self) -> int:
        return self._workspace_count

    def read(self) -> StateSnapshot:
        return self._snapshot

    async def update(self, field: str, value: Any) -> StateSnapshot:
        return await self.apply(**{field: value})

    async def apply(self, **changes: Any) -> StateSnapshot:
        """Applies several field changes atomically."""
        validated = {name: self._validate(name, value) for name, value in changes.items()}
        async with self._lock:
            previous = self._snapshot
            self._snapshot = previous.with_changes(**validated)
        if self._snapshot != previous:
            logger.debug("state updated", fields=sorted(validated))
        return self._snapshot

    async def set_workspaces(self, workspaces: Sequence[WorkspaceState]) -> StateSnapshot:
        return await self.update("workspaces", workspaces)

    async def set_window_title(self, title: str) -> StateSnapshot:
        return await self.update("window_title", title)

    async def set_sink_volume(self, volume: int | None) -> StateSnapshot:
        return await self.update("sink_volume", volume)

    async def set_source_volume(self, volume: int | None) -> StateSnapshot:
        return await self.update("source_volume", volume)

    def _validate(self, field: str, value: Any) -> Any:
        match field:
            case "workspaces":
                if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
                    raise ValueError(f"Workspaces must be a sequence, got {value!r}")
                workspaces = tuple(value)
                if len(workspaces) != self._workspace_count:
                    raise ValueError(
                        f"Expected {self._workspace_count} workspace slots, got {len(workspaces)}"
                    )
                if not all(isinstance(state, WorkspaceState) for state in workspaces):
                    raise ValueError("Workspace slots must be WorkspaceState values")
                return workspaces
            case "window_title":
                if not isinstance(value, str):
                    raise ValueError(f"Window title must be a string, got {value!r}")
                return value
            case "sink_volume" | "source_volume":
                if value is None:
                    return None
                if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                    raise ValueError(f"{field} must be a percentage or None, got {value!r}")
                return value
            case _:
                raise ValueError(f"Unknown state field: {field}")
