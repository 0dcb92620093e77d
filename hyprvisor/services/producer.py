from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Awaitable, Callable, Sequence

import structlog

from hyprvisor.domain.errors import HyprlandError
from hyprvisor.domain.models import WorkspaceState
from hyprvisor.infrastructure.backoff import Backoff

if TYPE_CHECKING:
    from hyprvisor.domain.models import Workspace
    from hyprvisor.domain.ports import VolumeSource, WindowManager
    from hyprvisor.services.state import StateStore

logger = structlog.get_logger(__name__)


def fold_workspaces(
    workspaces: Sequence[Workspace], active_id: int | None, count: int
) -> tuple[WorkspaceState, ...]:
    """Projects the window manager's workspaces onto ``count`` numbered slots.

    Slot ``n - 1`` holds workspace ``n``. Special and out-of-range workspaces are ignored.
    """
    slots = [WorkspaceState.EMPTY] * count
    for workspace in workspaces:
        if 1 <= workspace.id <= count and workspace.windows > 0:
            slots[workspace.id - 1] = WorkspaceState.OCCUPIED
    if active_id is not None and 1 <= active_id <= count:
        slots[active_id - 1] = WorkspaceState.ACTIVE
    return tuple(slots)


class StatePoller:
    """Feeds window manager and audio facts into the state store.

    Either source may be missing or fail; failures are logged and retried with a
    backoff without touching the other source.
    """

    def __init__(
        self,
        store: StateStore,
        window_manager: WindowManager | None,
        volume_source: VolumeSource | None,
        interval_seconds: float = 0.5,
    ) -> None:
        self._store = store
        self._window_manager = window_manager
        self._volume_source = volume_source
        self._interval = interval_seconds
        self._wm_backoff = Backoff(2, 60)
        self._volume_backoff = Backoff(2, 60)

    async def run(self) -> None:
        logger.info(
            "state poller started",
            window_manager=self._window_manager is not None,
            volume=self._volume_source is not None,
        )
        tasks = []
        if self._window_manager is not None:
            tasks.append(self._loop(self.poll_window_manager, self._wm_backoff))
        if self._volume_source is not None:
            tasks.append(self._loop(self.poll_volume, self._volume_backoff))
        await asyncio.gather(*tasks)

    async def _loop(self, poll: Callable[[], Awaitable[None]], backoff: Backoff) -> None:
        while True:
            try:
                await poll()
            except (HyprlandError, OSError, TimeoutError, ValueError) as e:
                wait = backoff.failed()
                logger.warning(
                    "polling failed", source=poll.__name__, error=str(e), retry_in=wait
                )
                await asyncio.sleep(wait)
                continue
            if backoff.attempts:
                logger.info("polling recovered", source=poll.__name__)
                backoff.reset()
            await asyncio.sleep(self._interval)

    async def poll_window_manager(self) -> None:
        assert self._window_manager is not None
        workspaces = await self._window_manager.workspaces()
        active_id = await self._window_manager.active_workspace_id()
        title = await self._window_manager.active_window_title()
        await self._store.apply(
            workspaces=fold_workspaces(workspaces, active_id, self._store.workspace_count),
            window_title=title,
        )

    async def poll_volume(self) -> None:
        assert self._volume_source is not None
        await self._store.apply(
            sink_volume=await self._volume_source.sink_volume(),
            source_volume=await self._volume_source.source_volume(),
        )
