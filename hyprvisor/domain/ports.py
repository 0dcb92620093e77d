from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from hyprvisor.domain.models import Workspace


class SubscriberConnection(Protocol):
    async def send(self, payload: bytes) -> None: ...
    def is_closing(self) -> bool: ...
    async def close(self) -> None: ...


class WindowManager(Protocol):
    async def workspaces(self) -> list[Workspace]: ...
    async def active_workspace_id(self) -> int | None: ...
    async def active_window_title(self) -> str: ...


class VolumeSource(Protocol):
    async def sink_volume(self) -> int | None: ...
    async def source_volume(self) -> int | None: ...
