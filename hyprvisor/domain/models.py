from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from hyprvisor.domain.topics import Topic

DEFAULT_WORKSPACE_COUNT = 10


class WorkspaceState(Enum):
    ACTIVE = "active"
    OCCUPIED = "occupied"
    EMPTY = "empty"


def default_workspaces(count: int = DEFAULT_WORKSPACE_COUNT) -> tuple[WorkspaceState, ...]:
    if count < 1:
        raise ValueError("At least one workspace slot is required")
    return (WorkspaceState.ACTIVE,) + (WorkspaceState.EMPTY,) * (count - 1)


@dataclass(kw_only=True, frozen=True, slots=True)
class StateSnapshot:
    workspaces: tuple[WorkspaceState, ...] = field(default_factory=default_workspaces)
    window_title: str = ""
    sink_volume: int | None = None  # None means muted
    source_volume: int | None = None

    def value_for(self, topic: Topic) -> Any:
        """Returns the JSON-ready value a subscriber of ``topic`` receives."""
        match topic:
            case Topic.WORKSPACE:
                return [state.value for state in self.workspaces]
            case Topic.WINDOW:
                return self.window_title
            case Topic.SINK_VOLUME:
                return self.sink_volume
            case Topic.SOURCE_VOLUME:
                return self.source_volume

    def with_changes(self, **changes: Any) -> "StateSnapshot":
        return replace(self, **changes)


@dataclass(kw_only=True, frozen=True)
class Workspace:
    """One workspace as reported by the window manager."""

    id: int
    name: str
    monitor: str = ""
    monitor_id: int = 0
    windows: int = 0
    has_fullscreen: bool = False
    last_window: str = ""
    last_window_title: str = ""


@dataclass(kw_only=True, frozen=True)
class HandshakeRecord:
    pid: int
    name: str | int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HandshakeRecord":
        pid = data["pid"]
        name = data["name"]
        if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0:
            raise ValueError(f"pid must be an unsigned integer, got {pid!r}")
        if isinstance(name, bool) or not isinstance(name, (str, int)):
            raise ValueError(f"name must be a string, got {name!r}")
        return cls(pid=pid, name=name)

    def to_dict(self) -> dict[str, Any]:
        return {"pid": self.pid, "name": self.name}

    def resolve_topic(self) -> Topic:
        if isinstance(self.name, int):
            return Topic.from_legacy(self.name)
        return Topic.from_wire(self.name)
