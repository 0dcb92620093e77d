import asyncio
from typing import Any, Coroutine, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def create_logged_task(
    coro: Coroutine[Any, Any, T], *, name: str | None = None
) -> asyncio.Task[T]:
    """Creates a task that logs exceptions on failure.

    Exceptions raised inside a task stay invisible until someone awaits it, which for
    fire-and-forget connection handlers is never. The wrapper logs them and re-raises.
    """
    task_name = name or coro.__qualname__

    async def wrapper() -> T:
        try:
            return await coro
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("task failed", task=task_name)
            raise

    return asyncio.create_task(wrapper(), name=task_name)


class TaskSet:
    """Keeps strong references to background tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        task = create_logged_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._discard)
        return task

    def _discard(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            # marks the exception retrieved; the wrapper already logged it
            task.exception()

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
