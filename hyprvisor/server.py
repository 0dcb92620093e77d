from __future__ import annotations

import asyncio
import contextlib
import os
import stat
from typing import TYPE_CHECKING

import structlog

from hyprvisor.common.aio import TaskSet, create_logged_task
from hyprvisor.domain.errors import HyprvisorError, SocketInUseError

if TYPE_CHECKING:
    from hyprvisor.services.broadcast import BroadcastLoop
    from hyprvisor.services.handshake import ConnectionHandler
    from hyprvisor.services.shared import SharedState

logger = structlog.get_logger(__name__)

PROBE_TIMEOUT_SECONDS = 1.0
SHUTDOWN_TIMEOUT_SECONDS = 2.0


async def is_socket_alive(socket_path: str) -> bool:
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_unix_connection(socket_path), timeout=PROBE_TIMEOUT_SECONDS
        )
    except (TimeoutError, OSError):
        return False
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return True


class HyprvisorServer:
    """Owns the listening socket, the broadcast loop and the per-connection tasks."""

    def __init__(
        self,
        socket_path: str,
        shared: SharedState,
        handler: ConnectionHandler,
        broadcast_loop: BroadcastLoop,
    ) -> None:
        self._socket_path = socket_path
        self._shared = shared
        self._handler = handler
        self._broadcast_loop = broadcast_loop
        self._server: asyncio.AbstractServer | None = None
        self._broadcast_task: asyncio.Task[None] | None = None
        self._connections = TaskSet()
        self._stopped = asyncio.Event()

    @property
    def socket_path(self) -> str:
        return self._socket_path

    @property
    def is_bound(self) -> bool:
        return self._server is not None

    async def prepare(self) -> None:
        """Clears a stale socket file left by a previous instance.

        Raises ``SocketInUseError`` when another live server answers on the path.
        """
        try:
            mode = os.stat(self._socket_path).st_mode
        except FileNotFoundError:
            logger.info("no running server bound on socket", socket_path=self._socket_path)
            return

        if not stat.S_ISSOCK(mode):
            raise HyprvisorError(f"{self._socket_path} exists and is not a socket")

        if await is_socket_alive(self._socket_path):
            raise SocketInUseError(self._socket_path)

        try:
            os.unlink(self._socket_path)
        except OSError as e:
            raise HyprvisorError(
                f"Failed to remove old socket path {self._socket_path}: {e}"
            ) from e
        logger.info("removed stale socket", socket_path=self._socket_path)

    async def bind(self) -> None:
        await self.prepare()
        self._server = await asyncio.start_unix_server(
            self._on_connection, path=self._socket_path
        )
        os.chmod(self._socket_path, 0o600)
        logger.info("hyprvisor listening for connections", socket_path=self._socket_path)

    async def run(self) -> None:
        if self._server is None:
            await self.bind()
        assert self._server is not None

        self._broadcast_task = create_logged_task(self._broadcast_loop.run(), name="broadcast")
        # not serve_forever(): on cancellation it blocks until every subscriber hangs up
        try:
            await self._stopped.wait()
        finally:
            await self.close()

    def _on_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._connections.spawn(self._handler(reader, writer), name="handshake")

    async def close(self) -> None:
        self._stopped.set()
        server, self._server = self._server, None
        if server is None:
            return
        server.close()

        if self._broadcast_task is not None:
            self._broadcast_task.cancel()
            await asyncio.gather(self._broadcast_task, return_exceptions=True)
            self._broadcast_task = None

        await self._connections.cancel_all()
        async with self._shared.lock:
            connections = self._shared.registry.drain()
        for connection in connections:
            await connection.close()

        try:
            await asyncio.wait_for(server.wait_closed(), timeout=SHUTDOWN_TIMEOUT_SECONDS)
        except TimeoutError:
            logger.warning("timed out waiting for connections to close")

        with contextlib.suppress(FileNotFoundError):
            os.unlink(self._socket_path)
        logger.info("hyprvisor stopped listening", socket_path=self._socket_path)
