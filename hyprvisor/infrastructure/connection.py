import asyncio

import structlog

logger = structlog.get_logger(__name__)


class StreamConnection:
    """A subscriber's end of an accepted socket.

    ``send`` raises ``ConnectionError`` (or ``TimeoutError`` when a write timeout is
    configured) once the peer is gone, which is how dead subscribers are found.
    """

    def __init__(self, writer: asyncio.StreamWriter, write_timeout: float | None = None) -> None:
        self._writer = writer
        self._write_timeout = write_timeout

    @property
    def peer(self) -> str:
        return str(self._writer.get_extra_info("peername") or "")

    def is_closing(self) -> bool:
        return self._writer.is_closing()

    async def send(self, payload: bytes) -> None:
        if self._writer.is_closing():
            raise ConnectionResetError("Connection already closed")
        self._writer.write(payload)
        if self._write_timeout is None:
            await self._writer.drain()
        else:
            await asyncio.wait_for(self._writer.drain(), timeout=self._write_timeout)

    async def close(self) -> None:
        if self._writer.is_closing():
            return
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("error while closing connection", error=str(e))
